"""
JPEG thumbnails for stored images.
"""

import io
import logging
from typing import Optional

from PIL import Image

from ..storage import StorageBackend

logger = logging.getLogger(__name__)


class ThumbnailGenerator:
    """Renders thumbnails next to the media tree under a hidden directory"""

    def __init__(self, storage: StorageBackend, directory: str = '.thumbnails',
                 size: int = 300, quality: int = 85, enabled: bool = True):
        self.storage = storage
        self.directory = directory.strip('/')
        self.size = (size, size)
        self.quality = quality
        self.enabled = enabled

    def thumbnail_path(self, file_path: str) -> str:
        return f"{self.directory}/{file_path}.jpg"

    def render(self, file_path: str) -> bytes:
        """Render a thumbnail for the image at ``file_path``."""
        with Image.open(self.storage.local_path(file_path)) as img:
            # Convert to RGB if necessary (for JPEG output)
            if img.mode not in ('RGB', 'L'):
                img = img.convert('RGB')

            img.thumbnail(self.size, Image.Resampling.LANCZOS)

            output = io.BytesIO()
            img.save(output, format='JPEG', quality=self.quality, optimize=True)
            return output.getvalue()

    def generate(self, file_path: str) -> Optional[str]:
        """
        Render and store a thumbnail.

        Returns:
            The thumbnail's storage path, or None when disabled or the image
            could not be decoded
        """
        if not self.enabled:
            return None

        path = self.thumbnail_path(file_path)
        try:
            data = self.render(file_path)
            self.storage.save(path, data)
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.warning(f"Could not generate thumbnail for {file_path}: {e}")
            return None

        logger.debug(f"Stored thumbnail {path} ({len(data)} bytes)")
        return path

    def delete(self, thumbnail_path: Optional[str]) -> None:
        if thumbnail_path:
            self.storage.delete(thumbnail_path)
