import logging
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from openpyxl.utils.cell import column_index_from_string, coordinate_from_string

from app.core.constants import IMAGES_FIELD
from app.services.workbook_reader import cell_address, is_blank

logger = logging.getLogger(__name__)

_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp")
_REFERENCE_SEPARATORS = re.compile(r"[,;\n]+")
_UNSAFE_NAME_CHARS = re.compile(r"[^\w.-]")


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    name: str
    extension: str


def sanitize_image_basename(value):
    """Reduce a name to letters, digits, dots, dashes and underscores."""
    if value is None:
        return ""
    return _UNSAFE_NAME_CHARS.sub("_", str(value).strip()).strip("_.")


def image_extension_from_format(image_format):
    if not image_format:
        return "jpg"
    fmt = str(image_format).strip().lower().lstrip(".")
    if fmt in {"jpg", "jpeg"}:
        return "jpg"
    if fmt in {"png", "gif", "bmp", "webp"}:
        return fmt
    return "jpg"


def _anchor_position(image):
    anchor = getattr(image, "anchor", None)
    if not anchor:
        return None
    # Some workbooks expose the anchor as a plain cell reference, e.g. "B3".
    if isinstance(anchor, str):
        try:
            letters, row = coordinate_from_string(anchor)
        except ValueError:
            return None
        return row - 1, column_index_from_string(letters) - 1
    cell_from = getattr(anchor, "_from", None)
    if cell_from is None:
        return None
    row = getattr(cell_from, "row", None)
    col = getattr(cell_from, "col", None)
    if row is None or col is None:
        return None
    return row, col


def _embedded_payload(image, ordinal):
    try:
        data = image._data()
    except (OSError, ValueError, AttributeError) as exc:
        logger.warning("Skipping unreadable embedded image #%s: %s", ordinal, exc)
        return None
    if not data:
        return None
    raw_name = Path(str(getattr(image, "path", "") or "")).stem
    name = sanitize_image_basename(raw_name) or f"image{ordinal}"
    return ImagePayload(
        data=data,
        name=name,
        extension=image_extension_from_format(getattr(image, "format", None)),
    )


def _referenced_payloads(value, source_dir):
    payloads = []
    for token in _REFERENCE_SEPARATORS.split(str(value)):
        token = token.strip().replace("\\", "/")
        if not token or Path(token).suffix.lower() not in _IMAGE_EXTENSIONS:
            continue
        candidate = (source_dir / token).resolve()
        if not candidate.is_relative_to(source_dir) or not candidate.is_file():
            continue
        payloads.append(
            ImagePayload(
                data=candidate.read_bytes(),
                name=sanitize_image_basename(candidate.stem) or "image",
                extension=image_extension_from_format(candidate.suffix),
            )
        )
    return payloads


def extract_images(sheet, column_mapping=None, image_source_dir=None):
    """Index images by the A1 address of the cell they are anchored to (or named in).

    Embedded images come from the openpyxl worksheet. When ``image_source_dir`` is
    given, file names written in the ``images`` column are read from that directory.
    Nothing is written to disk.
    """
    index = {}
    raw = getattr(sheet, "raw", None)
    embedded = getattr(raw, "_images", None) or []
    for ordinal, image in enumerate(embedded, start=1):
        position = _anchor_position(image)
        if position is None:
            continue
        payload = _embedded_payload(image, ordinal)
        if payload is None:
            continue
        index.setdefault(cell_address(*position), []).append(payload)

    images_col = column_mapping.index_of(IMAGES_FIELD) if column_mapping is not None else None
    if image_source_dir and images_col is not None:
        source_dir = Path(image_source_dir).resolve()
        for row in sheet.range().data_rows():
            value = sheet.cell(row, images_col)
            if is_blank(value):
                continue
            payloads = _referenced_payloads(value, source_dir)
            if payloads:
                index.setdefault(cell_address(row, images_col), []).extend(payloads)

    return MappingProxyType({address: tuple(items) for address, items in index.items()})


__all__ = [
    "ImagePayload",
    "extract_images",
    "image_extension_from_format",
    "sanitize_image_basename",
]
