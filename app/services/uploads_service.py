import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional

from app.config import Settings, get_settings
from app.core.constants import (
    ALWAYS_REQUIRED_FIELDS,
    DEFAULT_REQUIRED_FIELDS,
    JOB_STATUS_CANCELLED,
    JOB_STATUS_FAILED,
    JOB_STATUS_RUNNING,
    JOB_STATUS_SUCCESS,
    REFERENCE_FIELD,
)
from app.core.errors import (
    DuplicateError,
    ImportAbortedError,
    SchemaMismatchError,
    StoreError,
    TransientStoreError,
    UnsupportedFileError,
    UploadImportError,
    ValidationError,
)
from app.core.logging import job_context
from app.database.session import SessionLocal
from app.database.unit_of_work import transaction
from app.models.import_job import ImportJob
from app.services.asset_service import create_asset, finalize_media
from app.services.column_index import index_columns
from app.services.image_extractor import extract_images
from app.services.import_gate import ImportGate
from app.services.media_service import MediaLayout
from app.services.product_service import ProductRepository
from app.services.reference_resolver import resolve_references
from app.services.row_materializer import ImageStager, materialize_row
from app.services.workbook_reader import open_workbook

logger = logging.getLogger(__name__)


def new_job_id():
    return uuid.uuid4().hex


def parse_field_list(value):
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(item.strip() for item in value if item and item.strip())


@dataclass(frozen=True)
class ImportConfig:
    batch_size: int = 100
    image_width: int = 800
    image_height: int = 800
    required_fields: tuple[str, ...] = DEFAULT_REQUIRED_FIELDS
    reference_field: str = REFERENCE_FIELD

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.image_width < 1 or self.image_height < 1:
            raise ValueError("image bounds must be positive")

    @property
    def effective_required_fields(self):
        """Caller-declared fields plus the ones every import needs, in declaration order."""
        return tuple(dict.fromkeys((*self.required_fields, *ALWAYS_REQUIRED_FIELDS, self.reference_field)))

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides):
        settings = settings or get_settings()
        values = {
            "batch_size": settings.IMPORT_BATCH_SIZE,
            "image_width": settings.IMPORT_IMAGE_WIDTH,
            "image_height": settings.IMPORT_IMAGE_HEIGHT,
            "required_fields": parse_field_list(settings.IMPORT_REQUIRED_FIELDS),
            "reference_field": settings.IMPORT_REFERENCE_FIELD,
        }
        for key, value in overrides.items():
            if value is None:
                continue
            values[key] = parse_field_list(value) if key == "required_fields" else value
        return cls(**values)


@dataclass(frozen=True)
class ImportJobInput:
    file_path: str
    column_mapping: Mapping[str, str]
    config: ImportConfig = field(default_factory=ImportConfig.from_settings)
    job_id: Optional[str] = None
    image_source_dir: Optional[str] = None


@dataclass
class ImportSummary:
    job_id: str
    status: str = JOB_STATUS_RUNNING
    total_rows: int = 0
    created: int = 0
    skipped: int = 0
    rejected: int = 0
    failed_rows: int = 0
    failed_batches: int = 0
    fatal_error: Optional[str] = None

    def to_dict(self):
        return asdict(self)


@dataclass
class _BatchTally:
    created: int = 0
    skipped: int = 0
    rejected: int = 0
    # (sheet row, product id, staged paths) for products awaiting relocation.
    pending_media: list = field(default_factory=list)


def iter_batches(rows, size):
    batch = []
    for row in rows:
        batch.append(row)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


class ImportCoordinator:
    """Runs the data rows of one sheet through the gate in atomic batches."""

    def __init__(
        self,
        *,
        sheet,
        column_mapping,
        references,
        images,
        stager: ImageStager,
        config: ImportConfig,
        layout: MediaLayout,
        session_factory,
        job_id,
        cancel_event=None,
    ):
        self.sheet = sheet
        self.column_mapping = column_mapping
        self.references = references
        self.images = images
        self.stager = stager
        self.config = config
        self.layout = layout
        self.session_factory = session_factory
        self.job_id = job_id
        self.cancel_event = cancel_event

    def run(self, summary: ImportSummary) -> ImportSummary:
        rows = self.sheet.range().data_rows()
        for batch_index, batch in enumerate(iter_batches(rows, self.config.batch_size), start=1):
            if self.cancel_event is not None and self.cancel_event.is_set():
                logger.info(
                    "Import cancelled before batch %s",
                    batch_index,
                    extra=job_context(self.job_id, batch=batch_index),
                )
                summary.status = JOB_STATUS_CANCELLED
                return summary
            self._run_batch(batch_index, batch, summary)
        summary.status = JOB_STATUS_SUCCESS
        return summary

    def _abort(self, exc, summary, batch_index, row):
        row_index = row + 1 if row is not None else None
        logger.error(
            "Import aborted at batch %s row %s: %s",
            batch_index,
            row_index,
            exc,
            extra=job_context(self.job_id, batch=batch_index, row=row_index),
        )
        return ImportAbortedError(
            f"batch {batch_index}, row {row_index}: {exc}",
            summary=summary,
            batch_index=batch_index,
            row_index=row_index,
        )

    def _run_batch(self, batch_index, batch, summary):
        tally = _BatchTally()
        records = []
        row = None
        try:
            with transaction(self.session_factory) as db:
                gate = ImportGate(
                    ProductRepository(db),
                    self.config.required_fields,
                    self.config.reference_field,
                )
                for row in batch:
                    record = materialize_row(
                        self.sheet,
                        row,
                        self.column_mapping,
                        self.references,
                        self.images,
                        self.stager,
                        reference_field=self.config.reference_field,
                    )
                    records.append(record)
                    self._process_row(db, gate, record, tally, batch_index)
        except TransientStoreError:
            for record in records:
                self.stager.discard(record.staged_images)
            summary.failed_rows += len(batch)
            summary.failed_batches += 1
            logger.exception(
                "Batch %s rolled back (%s rows)",
                batch_index,
                len(batch),
                extra=job_context(self.job_id, batch=batch_index),
            )
            return
        except Exception as exc:
            for record in records:
                self.stager.discard(record.staged_images)
            raise self._abort(exc, summary, batch_index, row) from exc

        summary.created += tally.created
        summary.skipped += tally.skipped
        summary.rejected += tally.rejected
        logger.info(
            "Committed batch %s: %s created, %s skipped, %s rejected",
            batch_index,
            tally.created,
            tally.skipped,
            tally.rejected,
            extra=job_context(self.job_id, batch=batch_index),
        )

        for row, product_id, staged_paths in tally.pending_media:
            try:
                finalize_media(
                    self.session_factory,
                    product_id,
                    staged_paths,
                    self.layout,
                    self.config.image_width,
                    self.config.image_height,
                )
            except UploadImportError as exc:
                raise self._abort(exc, summary, batch_index, row) from exc

    def _process_row(self, db, gate, record, tally, batch_index):
        try:
            values = gate.check(record)
        except ValidationError as exc:
            self.stager.discard(record.staged_images)
            tally.rejected += 1
            logger.warning(
                "Rejected %s",
                exc,
                extra=job_context(self.job_id, batch=batch_index, row=record.sheet_row),
            )
            return
        except DuplicateError as exc:
            self.stager.discard(record.staged_images)
            tally.skipped += 1
            logger.info(
                "Skipped row %s: %s",
                record.sheet_row,
                exc,
                extra=job_context(self.job_id, batch=batch_index, row=record.sheet_row),
            )
            return

        product = create_asset(db, record, values, self.job_id)
        tally.created += 1
        if record.staged_images:
            tally.pending_media.append((record.row, product.id, record.staged_paths))


def _start_job(session_factory, job_id, file_path):
    with transaction(session_factory) as db:
        db.add(ImportJob(id=job_id, file_name=Path(file_path).name, status=JOB_STATUS_RUNNING))


def _finish_job(session_factory, summary: ImportSummary):
    try:
        with transaction(session_factory) as db:
            job = db.get(ImportJob, summary.job_id)
            if job is None:
                return
            job.status = summary.status
            job.total_rows = summary.total_rows
            job.created = summary.created
            job.skipped = summary.skipped
            job.rejected = summary.rejected
            job.failed_rows = summary.failed_rows
            job.failed_batches = summary.failed_batches
            job.error_message = summary.fatal_error
            job.finished_at = datetime.now(timezone.utc)
    except StoreError:
        logger.exception(
            "Could not record the outcome of import job %s",
            summary.job_id,
            extra=job_context(summary.job_id),
        )


def _fail(session_factory, summary, exc):
    summary.status = JOB_STATUS_FAILED
    summary.fatal_error = str(exc)
    _finish_job(session_factory, summary)


def import_file(
    job_input: ImportJobInput,
    session_factory=None,
    cancel_event=None,
    layout: Optional[MediaLayout] = None,
) -> ImportSummary:
    """Import the first sheet of a workbook into products, categories and media.

    Raises ``SchemaMismatchError``/``UnsupportedFileError`` before any row is
    touched and ``ImportAbortedError`` for fatal errors once rows are flowing.
    Batches committed before a fatal error stay committed.
    """
    session_factory = session_factory or SessionLocal
    layout = layout or MediaLayout.from_settings()
    config = job_input.config
    job_id = job_input.job_id or new_job_id()
    summary = ImportSummary(job_id=job_id)

    _start_job(session_factory, job_id, job_input.file_path)
    logger.info("Import job %s started for %s", job_id, job_input.file_path, extra=job_context(job_id))

    stager = ImageStager(layout.staging_dir(job_id))
    try:
        sheet = open_workbook(job_input.file_path).first_sheet()
        column_mapping = index_columns(
            job_input.column_mapping,
            sheet.range(),
            required_fields=config.effective_required_fields,
        )
        summary.total_rows = sheet.range().data_row_count
        images = extract_images(sheet, column_mapping, job_input.image_source_dir)
        with transaction(session_factory) as db:
            references = resolve_references(db, sheet, column_mapping, config.reference_field)

        ImportCoordinator(
            sheet=sheet,
            column_mapping=column_mapping,
            references=references,
            images=images,
            stager=stager,
            config=config,
            layout=layout,
            session_factory=session_factory,
            job_id=job_id,
            cancel_event=cancel_event,
        ).run(summary)
    except ImportAbortedError as exc:
        _fail(session_factory, summary, exc)
        exc.summary = summary
        raise
    except (SchemaMismatchError, UnsupportedFileError) as exc:
        logger.error("Import job %s rejected: %s", job_id, exc, extra=job_context(job_id))
        _fail(session_factory, summary, exc)
        raise
    except (UploadImportError, OSError) as exc:
        logger.exception("Import job %s failed before its first batch", job_id, extra=job_context(job_id))
        _fail(session_factory, summary, exc)
        raise ImportAbortedError(str(exc), summary=summary) from exc
    except Exception as exc:
        logger.exception("Import job %s failed unexpectedly", job_id, extra=job_context(job_id))
        _fail(session_factory, summary, exc)
        raise ImportAbortedError(f"unexpected error: {exc}", summary=summary) from exc
    finally:
        stager.cleanup()

    _finish_job(session_factory, summary)
    logger.info(
        "Import job %s %s: %s created, %s skipped, %s rejected, %s failed rows",
        job_id,
        summary.status,
        summary.created,
        summary.skipped,
        summary.rejected,
        summary.failed_rows,
        extra=job_context(job_id),
    )
    return summary


__all__ = [
    "ImportConfig",
    "ImportCoordinator",
    "ImportJobInput",
    "ImportSummary",
    "import_file",
    "iter_batches",
    "new_job_id",
    "parse_field_list",
]
