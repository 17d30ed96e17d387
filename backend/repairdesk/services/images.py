"""Attach uploaded images to articles and repair requests."""

import logging
import uuid
from typing import List, Sequence

from sqlalchemy.orm import Session

from repairdesk.core.storage import ImageStorage, file_extension
from repairdesk.models.catalog import Image

logger = logging.getLogger(__name__)


class ImageUploadSession:
    """Tracks files written during one request so they can be removed on rollback."""

    def __init__(self, db: Session, storage: ImageStorage):
        self.db = db
        self.storage = storage
        self.written: List[str] = []

    def store(self, uploads: Sequence, imageable_type: str, imageable_id: int, directory: str) -> List[Image]:
        """Write ``uploads`` and add an ``Image`` row for each (not committed)."""
        images = []
        for upload in uploads:
            path = self.storage.put(upload.file, upload.filename, directory)
            self.written.append(path)
            alt = f"{imageable_type}_{imageable_id}"
            image = Image(
                path=path,
                title=f"{alt}_{uuid.uuid4()}{file_extension(upload.filename)}",
                alt=alt,
                imageable_type=imageable_type,
                imageable_id=imageable_id,
            )
            self.db.add(image)
            images.append(image)
        self.db.flush()
        return images

    def discard(self) -> None:
        """Delete every file written by this session."""
        for path in self.written:
            try:
                self.storage.delete(path)
            except OSError as e:
                logger.error(f"Failed to remove orphaned image {path}: {e}")
        self.written.clear()


def delete_images(db: Session, images: Sequence[Image]) -> List[str]:
    """Delete image rows (not committed). Returns the paths of their files.

    Pass the paths to ``remove_files`` only after the commit succeeded.
    """
    paths = []
    for image in list(images):
        if image.path:
            paths.append(image.path)
        db.delete(image)
    return paths


def remove_files(storage: ImageStorage, paths: Sequence[str]) -> None:
    for path in paths:
        try:
            storage.delete(path)
        except OSError as e:
            logger.error(f"Failed to remove image file {path}: {e}")
