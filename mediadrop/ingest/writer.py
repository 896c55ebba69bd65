"""
Storage writer for uploaded files.

Bytes are streamed into a private temp file in the target directory and
then published under the final name with an exclusive hard link, so a name
is never overwritten and readers never see a partial file. When the name is
taken the duplicate probe runs again (a concurrent identical upload wins
the race) and otherwise the file is stored as ``stem_0.ext``,
``stem_1.ext``, ...
"""

import logging
import posixpath
import time
from dataclasses import dataclass
from typing import BinaryIO, Optional

from sqlalchemy.exc import SQLAlchemyError

from .duplicates import DuplicateDetector
from .thumbnails import ThumbnailGenerator
from ..db.connection import DatabaseManager
from ..db.models import MediaItem
from ..errors import DuplicateContent, UploadTimeout, WriteError
from ..storage import StorageBackend, StorageError

logger = logging.getLogger(__name__)

MAX_RENAME_ATTEMPTS = 1000


@dataclass
class WrittenFile:
    """A file published in storage but not yet recorded"""
    path: str
    filename: str
    size: int


class StorageWriter:

    def __init__(self, storage: StorageBackend, detector: DuplicateDetector,
                 db: DatabaseManager, thumbnails: Optional[ThumbnailGenerator] = None,
                 chunk_size: int = 1024 * 1024):
        self.storage = storage
        self.detector = detector
        self.db = db
        self.thumbnails = thumbnails
        self.chunk_size = chunk_size

    def write(self, stream: BinaryIO, directory: str, filename: str,
              deadline: Optional[float] = None) -> WrittenFile:
        """
        Store ``stream`` as ``directory/filename``.

        Args:
            stream: Readable binary stream positioned at the start
            directory: Target directory, created if missing
            filename: Desired basename
            deadline: ``time.monotonic()`` value after which the write is aborted

        Raises:
            DuplicateContent: The name was claimed meanwhile by a file of equal size
            UploadTimeout: The deadline passed while streaming
            WriteError: Any I/O fault
        """
        try:
            self.storage.ensure_directory(directory)
            temp_path, handle = self.storage.open_temp(directory)
        except (OSError, StorageError) as e:
            raise WriteError(f"Could not prepare directory: {e}", filename)

        try:
            with handle:
                size = self._copy(stream, handle, deadline, filename)
            final_name = self._claim(temp_path, directory, filename, size)
        except (OSError, StorageError) as e:
            raise WriteError(f"Failed to store file: {e}", filename)
        finally:
            self._remove_temp(temp_path)

        path = posixpath.join(directory, final_name)
        logger.info(f"Stored {path} ({size} bytes)")
        return WrittenFile(path=path, filename=final_name, size=size)

    def _copy(self, stream: BinaryIO, handle: BinaryIO, deadline: Optional[float],
              filename: str) -> int:
        size = 0
        while True:
            if deadline is not None and time.monotonic() > deadline:
                raise UploadTimeout("Upload timed out", filename)
            chunk = stream.read(self.chunk_size)
            if not chunk:
                return size
            handle.write(chunk)
            size += len(chunk)

    def _claim(self, temp_path: str, directory: str, filename: str, size: int) -> str:
        if self.storage.claim(temp_path, posixpath.join(directory, filename)):
            return filename

        existing = self.detector.check(posixpath.join(directory, filename), size)
        if existing.is_duplicate:
            raise DuplicateContent(existing.existing_path, filename)

        stem, ext = posixpath.splitext(filename)
        for counter in range(MAX_RENAME_ATTEMPTS):
            candidate = f"{stem}_{counter}{ext}"
            if self.storage.claim(temp_path, posixpath.join(directory, candidate)):
                logger.debug(f"Name {filename} taken, stored as {candidate}")
                return candidate

        raise WriteError(f"No free filename for {filename} after {MAX_RENAME_ATTEMPTS} attempts",
                         filename)

    def _remove_temp(self, temp_path: str) -> None:
        try:
            self.storage.delete(temp_path)
        except (OSError, StorageError) as e:
            logger.warning(f"Could not remove temp file {temp_path}: {e}")

    def create_object(self, album_id: int, written: WrittenFile, media_type: str,
                      mime_type: str, category_node_id: Optional[int] = None,
                      owner_uid: Optional[int] = None) -> MediaItem:
        """
        Persist the MediaItem for a written file.

        Images also get a best-effort thumbnail.

        Raises:
            WriteError: The row could not be inserted
        """
        thumbnail_path = None
        if self.thumbnails is not None and mime_type.startswith('image/'):
            thumbnail_path = self.thumbnails.generate(written.path)

        try:
            with self.db.session_scope() as session:
                item = MediaItem(
                    album_id=album_id,
                    name=written.filename,
                    media_type=media_type,
                    mime_type=mime_type,
                    file_path=written.path,
                    file_size=written.size,
                    thumbnail_path=thumbnail_path,
                    category_node_id=category_node_id,
                    owner_uid=owner_uid,
                )
                session.add(item)
        except SQLAlchemyError as e:
            if self.thumbnails is not None:
                self.thumbnails.delete(thumbnail_path)
            raise WriteError(f"Failed to create media item: {e}", written.filename)

        return item

    def discard(self, written: WrittenFile, media_item_id: Optional[int] = None) -> None:
        """
        Undo a write after a later stage failed.

        Removes the MediaItem row (if any), its thumbnail and the file. Best
        effort: cleanup failures are logged and never raised, so the caller
        can still report the original error.
        """
        if media_item_id is not None:
            try:
                with self.db.session_scope() as session:
                    item = session.get(MediaItem, media_item_id)
                    if item is not None:
                        if self.thumbnails is not None:
                            self.thumbnails.delete(item.thumbnail_path)
                        session.delete(item)
            except (SQLAlchemyError, StorageError, OSError) as e:
                logger.error(f"Could not remove media item {media_item_id}: {e}")

        try:
            self.storage.delete(written.path)
        except (StorageError, OSError) as e:
            logger.error(f"Could not remove {written.path}: {e}")
            return
        logger.info(f"Discarded {written.path}")
