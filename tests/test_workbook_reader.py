import tempfile
import unittest
import zipfile
from pathlib import Path

from openpyxl import Workbook

from app.core.errors import SchemaMismatchError, UnsupportedFileError
from app.services.workbook_reader import (
    CellPosition,
    WorksheetRange,
    cell_address,
    is_blank,
    open_workbook,
)
from tests.helpers import build_workbook, product_row


class WorkbookReaderTest(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_cell_address_is_zero_based(self):
        self.assertEqual(cell_address(0, 0), "A1")
        self.assertEqual(cell_address(4, 8), "I5")
        self.assertEqual(cell_address(9, 26), "AA10")

    def test_blank_values(self):
        self.assertTrue(is_blank(None))
        self.assertTrue(is_blank("   "))
        self.assertFalse(is_blank(0))
        self.assertFalse(is_blank("x"))

    def test_range_rejects_inverted_bounds(self):
        with self.assertRaises(ValueError):
            WorksheetRange(start=CellPosition(3, 0), end=CellPosition(1, 2))

    def test_xlsx_range_and_cells(self):
        path = build_workbook(self.tmp_path / "items.xlsx", [product_row(1), product_row(2)])

        sheet = open_workbook(path).first_sheet()
        sheet_range = sheet.range()

        self.assertEqual(sheet_range.start, CellPosition(0, 0))
        self.assertEqual(sheet_range.end, CellPosition(2, 10))
        self.assertEqual(list(sheet_range.data_rows()), [1, 2])
        self.assertEqual(sheet_range.data_row_count, 2)
        self.assertEqual(sheet.cell(1, 2), "Widget 1")
        self.assertEqual(sheet.cell(2, 7), 20)
        self.assertIsNone(sheet.cell(1, 8))
        self.assertIsNone(sheet.cell(40, 0))
        self.assertEqual(sheet.header_title(10), "Color")

    def test_offset_sheet_keeps_absolute_coordinates(self):
        workbook = Workbook()
        worksheet = workbook.active
        worksheet.cell(row=3, column=2, value="Name")
        worksheet.cell(row=4, column=2, value="Hex bolt")
        path = self.tmp_path / "offset.xlsx"
        workbook.save(path)

        sheet = open_workbook(path).first_sheet()

        self.assertEqual(sheet.range().start, CellPosition(2, 1))
        self.assertEqual(sheet.range().header_row, 2)
        self.assertEqual(sheet.cell(3, 1), "Hex bolt")

    def test_header_title_falls_back_to_column_letter(self):
        path = self.tmp_path / "items.csv"
        path.write_text("Name,,Qty\nBolt,x,3\n", encoding="utf-8")

        sheet = open_workbook(path).first_sheet()

        self.assertEqual(sheet.header_title(1), "B")
        self.assertEqual(sheet.header_row(), ("Name", None, "Qty"))

    def test_csv_trailing_blank_rows_are_dropped(self):
        path = self.tmp_path / "items.csv"
        path.write_text("Name,Qty\nBolt,3\n,\n\n", encoding="utf-8")

        sheet = open_workbook(path).first_sheet()

        self.assertEqual(sheet.range().end, CellPosition(1, 1))
        self.assertEqual(sheet.cell(1, 1), "3")

    def test_empty_csv_is_a_schema_error(self):
        path = self.tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")

        with self.assertRaises(SchemaMismatchError):
            open_workbook(path)

    def test_unsupported_and_missing_files(self):
        text_file = self.tmp_path / "notes.txt"
        text_file.write_text("hello", encoding="utf-8")

        with self.assertRaises(UnsupportedFileError):
            open_workbook(text_file)
        with self.assertRaises(UnsupportedFileError):
            open_workbook(self.tmp_path / "missing.xlsx")

    def test_corrupt_xlsx_is_unsupported(self):
        path = self.tmp_path / "broken.xlsx"
        path.write_bytes(b"not a zip archive")

        with self.assertRaises(UnsupportedFileError):
            open_workbook(path)

    def test_malformed_package_xml_is_unsupported(self):
        path = self.tmp_path / "broken_xml.xlsx"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("[Content_Types].xml", "<not xml")

        with self.assertRaises(UnsupportedFileError):
            open_workbook(path)

    def test_only_first_sheet_is_returned_first(self):
        workbook = Workbook()
        workbook.active.title = "main"
        workbook.active.append(["Name"])
        workbook.create_sheet("extra").append(["Other"])
        path = self.tmp_path / "two.xlsx"
        workbook.save(path)

        parsed = open_workbook(path)

        self.assertEqual(len(parsed.sheets()), 2)
        self.assertEqual(parsed.first_sheet().name, "main")


if __name__ == "__main__":
    unittest.main()
