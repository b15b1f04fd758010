from __future__ import annotations

import logging
import random
import re
import shutil
import string
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from PIL import Image, ImageOps

from app.config import Settings, get_settings
from app.core.constants import RESIZABLE_IMAGE_FORMATS

logger = logging.getLogger(__name__)

_STAGED_NAME = re.compile(r"^(\d+-)([A-Za-z0-9]{5})(-.+)$")
_PIL_FORMATS = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "gif": "GIF",
    "bmp": "BMP",
}
_MAX_NAME_ATTEMPTS = 20


@dataclass(frozen=True)
class MediaLayout:
    """Where staged and final media live on disk, and how final files are addressed."""

    root: Path
    sub_dir: str
    staging_dir_name: str

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> MediaLayout:
        settings = settings or get_settings()
        return cls(
            root=Path(settings.UPLOAD_ROOT_DIR),
            sub_dir=settings.UPLOAD_SUB_DIR.strip("/"),
            staging_dir_name=settings.UPLOAD_STAGING_DIR.strip("/"),
        )

    @property
    def media_root(self) -> Path:
        return self.root / self.sub_dir

    def asset_dir(self, kind: str, asset_id) -> Path:
        return self.media_root / kind / str(asset_id)

    def public_path(self, kind: str, asset_id, filename: str) -> str:
        return f"/{self.sub_dir}/{kind}/{asset_id}/{filename}"

    def staging_dir(self, job_id: str) -> Path:
        return self.root / self.staging_dir_name / job_id


def ensure_dir(path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def move_file(src, dst) -> Path:
    return Path(shutil.move(str(src), str(dst)))


def remove_file(path) -> None:
    Path(path).unlink(missing_ok=True)


def remove_dir_if_empty(path) -> bool:
    path = Path(path)
    if not path.is_dir() or any(path.iterdir()):
        return False
    path.rmdir()
    return True


def image_format(path) -> str:
    return Path(path).suffix.lower().lstrip(".")


def is_resizable(path) -> bool:
    return image_format(path) in RESIZABLE_IMAGE_FORMATS


def random_token(length: int = 5) -> str:
    return "".join(random.choices(string.ascii_letters + string.digits, k=length))


def staged_file_name(name: str, extension: str) -> str:
    return f"{int(time.time() * 1000)}-{random_token()}-{name}.{extension}"


def randomize_name(filename: str) -> str:
    """Swap the random part of a staged name (or add one) with a random number."""
    suffix = random.randint(0, 100_000)
    match = _STAGED_NAME.match(filename)
    if match:
        return f"{match.group(1)}{suffix}{match.group(3)}"
    path = Path(filename)
    return f"{path.stem}-{suffix}{path.suffix}"


def unique_path(directory, filename: str) -> Path:
    directory = Path(directory)
    candidate = directory / filename
    attempts = 0
    while candidate.exists():
        attempts += 1
        if attempts > _MAX_NAME_ATTEMPTS:
            raise FileExistsError(f"no free file name for {filename} in {directory}")
        candidate = directory / randomize_name(filename)
    return candidate


def resize_image(src, dst, max_width: int, max_height: int) -> tuple[int, int]:
    """Fit ``src`` inside the box (aspect kept, never enlarged) and write it to ``dst``."""
    fmt = _PIL_FORMATS.get(image_format(dst), "PNG")
    with Image.open(src) as img:
        img = ImageOps.exif_transpose(img)
        img.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
        if fmt in ("JPEG", "BMP") and img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.save(dst, format=fmt)
        return img.size


def relocate_images(staged_paths: Iterable, target_dir, max_width: int, max_height: int) -> list[Path]:
    ensure_dir(target_dir)
    final_paths = []
    for staged in staged_paths:
        moved = move_file(staged, unique_path(target_dir, Path(staged).name))
        if is_resizable(moved):
            resized = unique_path(target_dir, randomize_name(moved.name))
            resize_image(moved, resized, max_width, max_height)
            remove_file(moved)
            moved = resized
        logger.debug("Relocated %s -> %s", staged, moved)
        final_paths.append(moved)
    return final_paths


__all__ = [
    "MediaLayout",
    "ensure_dir",
    "image_format",
    "is_resizable",
    "move_file",
    "randomize_name",
    "relocate_images",
    "remove_dir_if_empty",
    "remove_file",
    "resize_image",
    "staged_file_name",
    "unique_path",
]
