from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from openpyxl.utils import column_index_from_string, get_column_letter

from app.core.constants import PRODUCT_FIELDS
from app.core.errors import SchemaMismatchError
from app.services.workbook_reader import WorksheetRange

_COLUMN_LETTERS = re.compile(r"^[A-Z]{1,3}$")


@dataclass(frozen=True)
class ColumnMapping:
    """Caller-declared field -> column letter pairs with their resolved zero-based indices."""

    letters: tuple[tuple[str, str], ...]
    indices: Mapping[str, int]
    fields_by_column: Mapping[int, str]

    def index_of(self, field: str) -> int | None:
        return self.indices.get(field)

    def field_at(self, col: int) -> str | None:
        return self.fields_by_column.get(col)

    def is_mapped(self, col: int) -> bool:
        return col in self.fields_by_column

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(field for field, _ in self.letters)


def column_letter_to_index(letter: str) -> int:
    text = str(letter).strip().upper()
    if not _COLUMN_LETTERS.match(text):
        raise SchemaMismatchError(f"invalid column letter {letter!r}")
    try:
        return column_index_from_string(text) - 1
    except ValueError as exc:
        raise SchemaMismatchError(f"invalid column letter {letter!r}") from exc


def index_columns(
    mapping: Mapping[str, str],
    sheet_range: WorksheetRange,
    required_fields: Iterable[str] = (),
    known_fields: Iterable[str] | None = PRODUCT_FIELDS,
) -> ColumnMapping:
    """Validate a field -> column letter mapping once per job, before any row is read."""
    if not mapping:
        raise SchemaMismatchError("column mapping is empty")

    known = set(known_fields) if known_fields is not None else None
    letters: list[tuple[str, str]] = []
    indices: dict[str, int] = {}
    fields_by_column: dict[int, str] = {}

    for field, letter in mapping.items():
        field = str(field).strip()
        if known is not None and field not in known:
            raise SchemaMismatchError(f"unknown field '{field}' in column mapping")
        col = column_letter_to_index(letter)
        if not sheet_range.contains_column(col):
            first = get_column_letter(sheet_range.start.col + 1)
            last = get_column_letter(sheet_range.end.col + 1)
            raise SchemaMismatchError(
                f"field '{field}' maps to column {str(letter).strip().upper()} outside worksheet range {first}:{last}"
            )
        if col in fields_by_column:
            raise SchemaMismatchError(
                f"fields '{fields_by_column[col]}' and '{field}' both map to column {get_column_letter(col + 1)}"
            )
        letters.append((field, get_column_letter(col + 1)))
        indices[field] = col
        fields_by_column[col] = field

    missing = [field for field in required_fields if field not in indices]
    if missing:
        raise SchemaMismatchError(
            "Some columns are missing when doing import: {}".format(", ".join(missing))
        )

    return ColumnMapping(
        letters=tuple(letters),
        indices=MappingProxyType(indices),
        fields_by_column=MappingProxyType(fields_by_column),
    )


__all__ = ["ColumnMapping", "column_letter_to_index", "index_columns"]
