"""Local image storage for uploaded files."""

import logging
import os
import re
import uuid
from pathlib import Path
from typing import BinaryIO, Optional, Set

from repairdesk.core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS: Set[str] = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".svg", ".webp"}

# Characters that are safe in filenames
SAFE_FILENAME_PATTERN = re.compile(r"[^a-zA-Z0-9._-]")


def file_extension(filename: Optional[str]) -> str:
    """Lower-cased extension including the dot, or "" when absent/unsafe."""
    if not filename:
        return ""
    _, ext = os.path.splitext(os.path.basename(filename))
    ext = ext.lower()
    if ext and not re.match(r"^\.[a-z0-9]+$", ext):
        return ""
    return ext


def generate_secure_filename(original_filename: str, prefix: str = "") -> str:
    """UUID-based filename that keeps the original (sanitized) extension."""
    ext = file_extension(original_filename)
    unique_id = uuid.uuid4().hex
    if prefix:
        prefix = SAFE_FILENAME_PATTERN.sub("_", prefix).strip("_.")
        return f"{prefix}_{unique_id}{ext}"
    return f"{unique_id}{ext}"


def file_size(stream: BinaryIO) -> int:
    """Size in bytes of a seekable stream; the position is restored."""
    position = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(position)
    return size


def is_safe_path(base_path: Path, target_path: Path) -> bool:
    """Check that ``target_path`` resolves inside ``base_path``."""
    try:
        target_path.resolve().relative_to(base_path.resolve())
        return True
    except ValueError:
        return False


class ImageStorage:
    """Writes uploaded images below a base directory.

    Paths returned by ``put`` are relative to the base directory and are what
    gets stored on ``Image.path``.
    """

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.upload_dir)

    def _resolve(self, relative_path: str) -> Path:
        full_path = self.base_dir / relative_path
        if not is_safe_path(self.base_dir, full_path):
            raise ValueError("Invalid file path")
        return full_path

    def put(self, stream: BinaryIO, original_filename: str, directory: str = "images") -> str:
        """Copy ``stream`` into ``directory`` under a fresh name; return the relative path."""
        relative_path = f"{directory}/{generate_secure_filename(original_filename)}"
        full_path = self._resolve(relative_path)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        stream.seek(0)
        with open(full_path, "wb") as out:
            while True:
                chunk = stream.read(64 * 1024)
                if not chunk:
                    break
                out.write(chunk)

        logger.debug(f"Stored image {relative_path}")
        return relative_path

    def delete(self, relative_path: str) -> bool:
        """Remove a stored file. Missing files are not an error."""
        full_path = self._resolve(relative_path)
        try:
            full_path.unlink()
        except FileNotFoundError:
            return False
        return True

    def exists(self, relative_path: str) -> bool:
        return self._resolve(relative_path).is_file()


def get_storage() -> ImageStorage:
    """FastAPI dependency returning the configured image storage."""
    return ImageStorage()
