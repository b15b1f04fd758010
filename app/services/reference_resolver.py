import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from app.services.category_service import CategoryRepository
from app.services.workbook_reader import is_blank

logger = logging.getLogger(__name__)


def reference_key(value):
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


@dataclass(frozen=True)
class ReferenceMap:
    """Read-only snapshot of reference value -> record id, handed to every batch."""

    entries: Mapping[str, int]
    created: int = 0

    def lookup(self, value):
        key = reference_key(value)
        if key is None:
            return None
        return self.entries.get(key)

    def __len__(self):
        return len(self.entries)

    def __contains__(self, value):
        return self.lookup(value) is not None


def collect_reference_values(sheet, column):
    values = []
    for row in sheet.range().data_rows():
        key = reference_key(sheet.cell(row, column))
        if key is not None:
            values.append(key)
    return values


def resolve_references(db, sheet, column_mapping, reference_field):
    column = column_mapping.index_of(reference_field)
    if column is None:
        return ReferenceMap(entries=MappingProxyType({}))

    repository = CategoryRepository(db)
    entries = {}
    created = 0
    # dict.fromkeys keeps first-seen order while dropping repeats.
    for name in dict.fromkeys(collect_reference_values(sheet, column)):
        entries[name], was_created = repository.find_or_create(name)
        if was_created:
            created += 1

    logger.info(
        "Resolved %s reference values for '%s' (%s created)",
        len(entries),
        reference_field,
        created,
    )
    return ReferenceMap(entries=MappingProxyType(entries), created=created)


__all__ = ["ReferenceMap", "collect_reference_values", "reference_key", "resolve_references"]
