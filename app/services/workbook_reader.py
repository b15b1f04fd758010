import csv
import logging
import zipfile
from xml.etree import ElementTree
from dataclasses import dataclass
from pathlib import Path

from openpyxl import load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from app.core.constants import DATA_ROW_OFFSET, SUPPORTED_WORKBOOK_SUFFIXES
from app.core.errors import SchemaMismatchError, UnsupportedFileError

logger = logging.getLogger(__name__)


def is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def cell_address(row, col):
    """A1-style address for zero-based ``row``/``col``."""
    return f"{get_column_letter(col + 1)}{row + 1}"


@dataclass(frozen=True)
class CellPosition:
    row: int
    col: int


@dataclass(frozen=True)
class WorksheetRange:
    start: CellPosition
    end: CellPosition

    def __post_init__(self):
        if self.start.row > self.end.row or self.start.col > self.end.col:
            raise ValueError(f"invalid worksheet range {self.start} -> {self.end}")

    @property
    def header_row(self):
        return self.start.row

    @property
    def first_data_row(self):
        return self.start.row + DATA_ROW_OFFSET

    def data_rows(self):
        return range(self.first_data_row, self.end.row + 1)

    def columns(self):
        return range(self.start.col, self.end.col + 1)

    def contains_column(self, col):
        return self.start.col <= col <= self.end.col

    @property
    def data_row_count(self):
        return max(0, self.end.row - self.first_data_row + 1)


class _GridSheet:
    """Sheet backed by an in-memory grid of values anchored at ``sheet_range.start``."""

    def __init__(self, name, grid, sheet_range, raw=None):
        self.name = name
        self._grid = grid
        self._range = sheet_range
        self.raw = raw

    def range(self):
        return self._range

    def cell(self, row, col):
        grid_row = row - self._range.start.row
        grid_col = col - self._range.start.col
        if grid_row < 0 or grid_col < 0 or grid_row >= len(self._grid):
            return None
        values = self._grid[grid_row]
        if grid_col >= len(values):
            return None
        value = values[grid_col]
        if isinstance(value, str) and value == "":
            return None
        return value

    def header_row(self):
        header = self._range.header_row
        return tuple(self.cell(header, col) for col in self._range.columns())

    def header_title(self, col):
        title = self.cell(self._range.header_row, col)
        if is_blank(title):
            return get_column_letter(col + 1)
        return str(title).strip()


class XlsxSheet(_GridSheet):
    def __init__(self, worksheet):
        sheet_range = WorksheetRange(
            start=CellPosition(worksheet.min_row - 1, worksheet.min_column - 1),
            end=CellPosition(worksheet.max_row - 1, worksheet.max_column - 1),
        )
        grid = [
            tuple(row)
            for row in worksheet.iter_rows(
                min_row=worksheet.min_row,
                max_row=worksheet.max_row,
                min_col=worksheet.min_column,
                max_col=worksheet.max_column,
                values_only=True,
            )
        ]
        super().__init__(worksheet.title, grid, sheet_range, raw=worksheet)


class CsvSheet(_GridSheet):
    def __init__(self, name, rows):
        width = max((len(row) for row in rows), default=0)
        if not rows or width == 0:
            raise SchemaMismatchError(f"sheet '{name}' has no populated cells")
        sheet_range = WorksheetRange(
            start=CellPosition(0, 0),
            end=CellPosition(len(rows) - 1, width - 1),
        )
        super().__init__(name, [tuple(row) for row in rows], sheet_range)


class ParsedWorkbook:
    def __init__(self, path, sheets):
        self.path = Path(path)
        self._sheets = list(sheets)

    def sheets(self):
        return list(self._sheets)

    def first_sheet(self):
        if not self._sheets:
            raise SchemaMismatchError(f"workbook {self.path.name} has no sheets")
        return self._sheets[0]


def _read_csv_rows(path):
    with open(path, newline="", encoding="utf-8-sig") as handle:
        rows = [row for row in csv.reader(handle)]
    while rows and all(is_blank(value) for value in rows[-1]):
        rows.pop()
    return rows


def open_workbook(path):
    path = Path(path)
    if not path.exists():
        raise UnsupportedFileError(f"File not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_WORKBOOK_SUFFIXES:
        supported = ", ".join(SUPPORTED_WORKBOOK_SUFFIXES)
        raise UnsupportedFileError(f"Unsupported file type {suffix or '(none)'}; expected one of {supported}.")

    if suffix == ".csv":
        try:
            rows = _read_csv_rows(path)
        except (UnicodeDecodeError, csv.Error) as exc:
            raise UnsupportedFileError(f"Unreadable CSV file {path.name}: {exc}") from exc
        return ParsedWorkbook(path, [CsvSheet(path.stem, rows)])

    try:
        workbook = load_workbook(path, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, ElementTree.ParseError) as exc:
        raise UnsupportedFileError(f"Unreadable workbook {path.name}: {exc}") from exc
    sheets = [XlsxSheet(workbook[name]) for name in workbook.sheetnames]
    if len(sheets) > 1:
        logger.info("Workbook %s has %s sheets; only '%s' is imported.", path.name, len(sheets), sheets[0].name)
    return ParsedWorkbook(path, sheets)


__all__ = [
    "CellPosition",
    "CsvSheet",
    "ParsedWorkbook",
    "WorksheetRange",
    "XlsxSheet",
    "cell_address",
    "is_blank",
    "open_workbook",
]
