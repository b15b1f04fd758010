import re
import tempfile
import unittest
from pathlib import Path
from types import MappingProxyType

from app.core.errors import MediaPipelineError
from app.services.column_index import index_columns
from app.services.image_extractor import ImagePayload
from app.services.reference_resolver import ReferenceMap
from app.services.row_materializer import ImageStager, materialize_row
from app.services.workbook_reader import open_workbook
from tests.helpers import HEADER, INDEX, build_workbook, files_in, product_row

_STAGED_NAME = re.compile(r"^\d+-[A-Za-z0-9]{5}-front\.png$")


class RowMaterializerTest(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)
        rows = [
            product_row(1, category="Bolts") + ["red"],
            product_row(2, category="Unknown") + [None],
        ]
        path = build_workbook(self.tmp_path / "items.xlsx", rows, header=HEADER + ["Color"])
        self.sheet = open_workbook(path).first_sheet()
        self.mapping = index_columns(INDEX, self.sheet.range())
        self.references = ReferenceMap(entries=MappingProxyType({"Bolts": 7}))
        self.stager = ImageStager(self.tmp_path / "staging" / "job1")
        self.images = {"I2": (ImagePayload(data=b"\x89PNG-front", name="front", extension="png"),)}

    def tearDown(self):
        self._tmp.cleanup()

    def test_mapped_fields_and_reference(self):
        record = materialize_row(self.sheet, 1, self.mapping, self.references, self.images, self.stager)

        self.assertEqual(record.sheet_row, 2)
        self.assertEqual(record.name, "Widget 1")
        self.assertEqual(record.fields["quantity"], 10)
        self.assertNotIn("images", record.fields)
        self.assertEqual(record.reference_value, "Bolts")
        self.assertEqual(record.reference_id, 7)

    def test_other_fields_keep_order_and_duplicate_titles(self):
        record = materialize_row(self.sheet, 1, self.mapping, self.references, self.images, self.stager)

        self.assertEqual(record.other_fields, (("Color", "grey"), ("Color", "red")))

    def test_images_are_staged_with_random_names(self):
        record = materialize_row(self.sheet, 1, self.mapping, self.references, self.images, self.stager)

        self.assertEqual(len(record.staged_images), 1)
        staged = record.staged_images[0]
        self.assertEqual(staged.source_address, "I2")
        self.assertRegex(staged.path.name, _STAGED_NAME)
        self.assertEqual(staged.path.read_bytes(), b"\x89PNG-front")

    def test_unknown_reference_leaves_id_unset(self):
        record = materialize_row(self.sheet, 2, self.mapping, self.references, self.images, self.stager)

        self.assertEqual(record.reference_value, "Unknown")
        self.assertIsNone(record.reference_id)
        self.assertEqual(record.staged_images, [])

    def test_discard_and_cleanup_empty_staging(self):
        record = materialize_row(self.sheet, 1, self.mapping, self.references, self.images, self.stager)

        self.stager.discard(record.staged_images)

        self.assertEqual(files_in(self.stager.staging_dir), [])
        self.assertTrue(self.stager.cleanup())
        self.assertFalse(self.stager.staging_dir.exists())

    def test_staging_failure_is_a_media_error(self):
        blocked = self.tmp_path / "blocked"
        blocked.write_text("not a directory", encoding="utf-8")
        stager = ImageStager(blocked)

        with self.assertRaises(MediaPipelineError):
            materialize_row(self.sheet, 1, self.mapping, self.references, self.images, stager)


if __name__ == "__main__":
    unittest.main()
