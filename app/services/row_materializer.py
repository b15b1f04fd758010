from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from app.core.constants import IMAGES_FIELD, REFERENCE_FIELD
from app.core.errors import MediaPipelineError
from app.services.column_index import ColumnMapping
from app.services.image_extractor import ImagePayload
from app.services.media_service import (
    ensure_dir,
    remove_dir_if_empty,
    remove_file,
    staged_file_name,
    unique_path,
)
from app.services.reference_resolver import ReferenceMap
from app.services.workbook_reader import cell_address


@dataclass(frozen=True)
class StagedImage:
    path: Path
    source_address: str


@dataclass
class PendingRecord:
    row: int
    fields: dict[str, Any]
    reference_value: Any = None
    reference_id: int | None = None
    other_fields: tuple[tuple[str, Any], ...] = ()
    staged_images: list[StagedImage] = field(default_factory=list)

    @property
    def sheet_row(self) -> int:
        return self.row + 1

    @property
    def name(self):
        return self.fields.get("name")

    @property
    def staged_paths(self) -> list[Path]:
        return [image.path for image in self.staged_images]


class ImageStager:
    """Writes extracted image payloads into one job's private staging directory."""

    def __init__(self, staging_dir) -> None:
        self.staging_dir = Path(staging_dir)

    def stage(self, payloads: tuple[ImagePayload, ...], address: str) -> list[StagedImage]:
        staged: list[StagedImage] = []
        try:
            ensure_dir(self.staging_dir)
            for payload in payloads:
                path = unique_path(self.staging_dir, staged_file_name(payload.name, payload.extension))
                path.write_bytes(payload.data)
                staged.append(StagedImage(path=path, source_address=address))
        except OSError as exc:
            self.discard(staged)
            raise MediaPipelineError(f"failed staging images from {address}: {exc}") from exc
        return staged

    def discard(self, images) -> None:
        for image in images:
            remove_file(image.path)

    def cleanup(self) -> bool:
        return remove_dir_if_empty(self.staging_dir)


def materialize_row(
    sheet,
    row: int,
    column_mapping: ColumnMapping,
    references: ReferenceMap,
    images: Mapping[str, tuple[ImagePayload, ...]],
    stager: ImageStager,
    reference_field: str = REFERENCE_FIELD,
) -> PendingRecord:
    fields: dict[str, Any] = {}
    other_fields: list[tuple[str, Any]] = []
    record = PendingRecord(row=row, fields=fields)

    try:
        for col in sheet.range().columns():
            value = sheet.cell(row, col)
            address = cell_address(row, col)
            payloads = images.get(address)
            if payloads:
                record.staged_images.extend(stager.stage(payloads, address))

            mapped_field = column_mapping.field_at(col)
            if mapped_field is None:
                other_fields.append((sheet.header_title(col), value))
            elif mapped_field != IMAGES_FIELD:
                fields[mapped_field] = value
    except MediaPipelineError:
        stager.discard(record.staged_images)
        raise

    record.other_fields = tuple(other_fields)
    record.reference_value = fields.get(reference_field)
    record.reference_id = references.lookup(record.reference_value)
    return record


__all__ = ["ImageStager", "PendingRecord", "StagedImage", "materialize_row"]
