"""
Content type classification.

Maps an upload's MIME type to the media type it is stored as. Album
overrides win for ``image/*`` and ``video/*``; otherwise the mapping table
is consulted in (weight, mime_type) order and the first matching pattern
decides.
"""

import fnmatch
import logging
import mimetypes
from typing import Callable, List, Optional, Tuple

from .album_settings import AlbumSettings
from ..errors import UnsupportedContentType

logger = logging.getLogger(__name__)

OCTET_STREAM = 'application/octet-stream'

MappingProvider = Callable[[], List[Tuple[str, str]]]


def detect_content_type(filename: str, client_type: Optional[str]) -> str:
    """
    Content type for an upload.

    The client's declared type is used unless it is missing or the generic
    octet-stream, in which case the type is guessed from the filename.
    """
    declared = (client_type or '').split(';', 1)[0].strip().lower()
    if declared and declared != OCTET_STREAM:
        return declared

    guessed, _ = mimetypes.guess_type(filename)
    return guessed.lower() if guessed else OCTET_STREAM


class MediaClassifier:
    """Pure classification over an injected mapping table"""

    def __init__(self, mapping_provider: MappingProvider):
        """
        Args:
            mapping_provider: Returns ordered ``(pattern, media_type)`` pairs
        """
        self.mapping_provider = mapping_provider

    def classify(self, content_type: str, album: Optional[AlbumSettings] = None) -> str:
        """
        Resolve the media type for ``content_type``.

        Raises:
            UnsupportedContentType: No override or mapping matches
        """
        content_type = (content_type or '').lower()

        if album is not None:
            if content_type.startswith('image/') and album.image_media_type:
                return album.image_media_type
            if content_type.startswith('video/') and album.video_media_type:
                return album.video_media_type

        for pattern, media_type in self.mapping_provider():
            if fnmatch.fnmatchcase(content_type, pattern.lower()):
                logger.debug(f"Classified {content_type} as {media_type} via '{pattern}'")
                return media_type

        raise UnsupportedContentType(content_type or 'unknown')
