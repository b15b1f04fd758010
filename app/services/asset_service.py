import logging
from dataclasses import dataclass
from pathlib import Path

from app.config import get_settings
from app.core.constants import (
    MEDIA_DIR_PRODUCT,
    MEDIA_STATUS_COMPLETE,
    MEDIA_STATUS_FAILED,
    MEDIA_STATUS_LOST,
    MEDIA_STATUS_NONE,
    MEDIA_STATUS_PENDING,
)
from app.core.errors import MediaPipelineError, StoreError
from app.database.unit_of_work import transaction
from app.services.media_service import MediaLayout, relocate_images
from app.services.product_service import ProductRepository, json_safe

logger = logging.getLogger(__name__)


def create_asset(db, record, values, job_id=None):
    """Insert the product for an accepted row.

    Rows with staged images are stored with a pending-media marker that
    ``finalize_media`` (or the reconciliation pass) clears later.
    """
    staged = [str(path) for path in record.staged_paths]
    payload = dict(values)
    payload["other_fields"] = [[title, json_safe(value)] for title, value in record.other_fields]
    payload["images"] = []
    payload["staged_images"] = staged
    payload["media_status"] = MEDIA_STATUS_PENDING if staged else MEDIA_STATUS_NONE
    payload["import_job_id"] = job_id
    return ProductRepository(db).create(payload)


def _public_paths(layout, product_id, files):
    return [layout.public_path(MEDIA_DIR_PRODUCT, product_id, Path(path).name) for path in files]


def _mark_failed(session_factory, product_id):
    try:
        with transaction(session_factory) as db:
            ProductRepository(db).mark_media_status(product_id, MEDIA_STATUS_FAILED)
    except StoreError:
        logger.exception("Could not flag media failure for product %s", product_id)


def finalize_media(session_factory, product_id, staged_paths, layout: MediaLayout, width, height):
    """Move a committed product's staged images into its asset directory and record them."""
    target_dir = layout.asset_dir(MEDIA_DIR_PRODUCT, product_id)
    try:
        final_paths = relocate_images(staged_paths, target_dir, width, height)
        public = _public_paths(layout, product_id, final_paths)
        with transaction(session_factory) as db:
            ProductRepository(db).update_images(product_id, public)
    except (OSError, ValueError, LookupError, StoreError) as exc:
        logger.exception("Media pipeline failed for product %s", product_id)
        _mark_failed(session_factory, product_id)
        raise MediaPipelineError(
            f"media pipeline failed for product {product_id}: {exc}",
            product_id=product_id,
        ) from exc
    return public


@dataclass(frozen=True)
class ReconcileReport:
    completed: int = 0
    lost: int = 0
    failed: int = 0

    def to_dict(self):
        return {"completed": self.completed, "lost": self.lost, "failed": self.failed}


def _reconcile_product(session_factory, layout, product, width, height):
    staged = [Path(path) for path in product.staged_images or []]
    target_dir = layout.asset_dir(MEDIA_DIR_PRODUCT, product.id)
    adopted = sorted(p for p in target_dir.iterdir() if p.is_file()) if target_dir.is_dir() else []
    remaining = [path for path in staged if path.is_file()]

    relocated = relocate_images(remaining, target_dir, width, height) if remaining else []
    files = adopted + relocated
    status = MEDIA_STATUS_COMPLETE if files or not staged else MEDIA_STATUS_LOST

    with transaction(session_factory) as db:
        ProductRepository(db).update_images(
            product.id,
            _public_paths(layout, product.id, files),
            media_status=status,
        )
    return status


def reconcile_pending_media(session_factory=None, settings=None) -> ReconcileReport:
    """Complete or give up on products whose media never finished relocating."""
    settings = settings or get_settings()
    layout = MediaLayout.from_settings(settings)

    with transaction(session_factory) as db:
        pending = ProductRepository(db).list_pending_media()

    completed = lost = failed = 0
    for product in pending:
        try:
            status = _reconcile_product(
                session_factory,
                layout,
                product,
                settings.IMPORT_IMAGE_WIDTH,
                settings.IMPORT_IMAGE_HEIGHT,
            )
        except (OSError, ValueError, LookupError, StoreError):
            logger.exception("Reconciliation failed for product %s", product.id)
            failed += 1
            continue
        if status == MEDIA_STATUS_LOST:
            logger.warning("Staged images for product %s are gone; marked lost", product.id)
            lost += 1
        else:
            completed += 1

    logger.info(
        "Media reconciliation: %s completed, %s lost, %s failed",
        completed,
        lost,
        failed,
    )
    return ReconcileReport(completed=completed, lost=lost, failed=failed)


__all__ = [
    "ReconcileReport",
    "create_asset",
    "finalize_media",
    "reconcile_pending_media",
]
