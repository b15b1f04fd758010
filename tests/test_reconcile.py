import tempfile
import unittest
from pathlib import Path

from PIL import Image

from app.config import Settings
from app.core.constants import (
    MEDIA_STATUS_COMPLETE,
    MEDIA_STATUS_FAILED,
    MEDIA_STATUS_LOST,
    MEDIA_STATUS_NONE,
    MEDIA_STATUS_PENDING,
)
from app.database.unit_of_work import transaction
from app.services.asset_service import reconcile_pending_media
from app.services.category_service import CategoryRepository
from app.services.product_service import ProductRepository
from tests.helpers import files_in, media_layout, make_session_factory, write_png


class ReconcileTest(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)
        self.session_factory = make_session_factory()
        self.layout = media_layout(self.tmp_path / "media")
        self.settings = Settings(
            UPLOAD_ROOT_DIR=str(self.layout.root),
            UPLOAD_SUB_DIR="uploads",
            UPLOAD_STAGING_DIR="staging",
            IMPORT_IMAGE_WIDTH=400,
            IMPORT_IMAGE_HEIGHT=400,
        )
        self.staging = self.layout.staging_dir("job1")
        self.staging.mkdir(parents=True)
        with transaction(self.session_factory) as db:
            self.category_id = CategoryRepository(db).create("Bolts")

    def tearDown(self):
        self._tmp.cleanup()

    def _product(self, name, staged, media_status=MEDIA_STATUS_PENDING):
        with transaction(self.session_factory) as db:
            product = ProductRepository(db).create(
                {
                    "name": name,
                    "category_id": self.category_id,
                    "quantity": 1,
                    "staged_images": [str(path) for path in staged],
                    "media_status": media_status,
                }
            )
            return product.id

    def _get(self, product_id):
        with transaction(self.session_factory) as db:
            return ProductRepository(db).get(product_id)

    def test_pending_products_are_completed_or_marked_lost(self):
        staged = write_png(self.staging / "1700000000000-Ab3xZ-front.png", size=(800, 600))
        pending_id = self._product("Staged", [staged])

        adopted_id = self._product("Moved", [self.staging / "1700000000001-Zz9yY-gone.png"], MEDIA_STATUS_FAILED)
        asset_dir = self.layout.asset_dir("product", adopted_id)
        asset_dir.mkdir(parents=True)
        write_png(asset_dir / "1700000000001-512-gone.png", size=(10, 10))

        lost_id = self._product("Lost", [self.staging / "1700000000002-Qq1wW-lost.png"])
        untouched_id = self._product("Plain", [], MEDIA_STATUS_NONE)

        report = reconcile_pending_media(self.session_factory, self.settings)

        self.assertEqual((report.completed, report.lost, report.failed), (2, 1, 0))

        pending = self._get(pending_id)
        self.assertEqual(pending.media_status, MEDIA_STATUS_COMPLETE)
        self.assertEqual(len(pending.images), 1)
        self.assertEqual(pending.staged_images, [])
        final_file = self.layout.asset_dir("product", pending_id) / Path(pending.images[0]).name
        with Image.open(final_file) as img:
            self.assertEqual(img.size, (400, 300))

        adopted = self._get(adopted_id)
        self.assertEqual(adopted.media_status, MEDIA_STATUS_COMPLETE)
        self.assertEqual(adopted.images, [f"/uploads/product/{adopted_id}/1700000000001-512-gone.png"])

        lost = self._get(lost_id)
        self.assertEqual(lost.media_status, MEDIA_STATUS_LOST)
        self.assertEqual(lost.images, [])

        self.assertEqual(self._get(untouched_id).media_status, MEDIA_STATUS_NONE)
        self.assertEqual(files_in(self.staging), [])

    def test_second_pass_has_nothing_to_do(self):
        staged = write_png(self.staging / "1700000000000-Ab3xZ-front.png", size=(50, 50))
        self._product("Staged", [staged])

        reconcile_pending_media(self.session_factory, self.settings)
        report = reconcile_pending_media(self.session_factory, self.settings)

        self.assertEqual((report.completed, report.lost, report.failed), (0, 0, 0))


if __name__ == "__main__":
    unittest.main()
