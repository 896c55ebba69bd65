"""
Storage abstraction layer for MediaDrop.

Provides the interface the ingestion pipeline writes through. Paths are
relative to the backend root; the local backend refuses any path that
resolves outside it.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, List, BinaryIO, Tuple
from datetime import datetime
from dataclasses import dataclass
import errno
import logging
import os
import tempfile

logger = logging.getLogger(__name__)


@dataclass
class StorageMetadata:
    """Metadata for a stored object."""
    size: int = 0
    modified: Optional[datetime] = None


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageNotFoundError(StorageError):
    """Raised when a storage object is not found."""
    pass


class StoragePermissionError(StorageError):
    """Raised when a path escapes the storage root or access is denied."""
    pass


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check if an object exists at the given path."""

    @abstractmethod
    def get_metadata(self, path: str) -> StorageMetadata:
        """Get metadata for object at path."""

    @abstractmethod
    def ensure_directory(self, path: str) -> None:
        """Create a directory and its parents if missing."""

    @abstractmethod
    def list_directories(self, path: str) -> List[str]:
        """Names of the immediate sub-directories of ``path``."""

    @abstractmethod
    def open_temp(self, directory: str) -> Tuple[str, BinaryIO]:
        """
        Create a private temporary file inside ``directory``.

        Returns:
            The temp file's storage path and a binary handle open for writing
        """

    @abstractmethod
    def claim(self, temp_path: str, final_path: str) -> bool:
        """
        Atomically publish ``temp_path`` under ``final_path``.

        Never overwrites. Returns False when ``final_path`` is already taken.
        """

    @abstractmethod
    def save(self, path: str, data: bytes) -> None:
        """Write ``data`` to ``path``, replacing any existing object."""

    @abstractmethod
    def load_data(self, path: str) -> bytes:
        """Load the data at ``path``."""

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Delete object at the given path. Returns True if deleted."""

    @abstractmethod
    def local_path(self, path: str) -> Path:
        """Filesystem path for readers that need one (e.g. image decoders)."""

    def get_size(self, path: str) -> int:
        """Get the size of an object."""
        return self.get_metadata(path).size


class LocalStorage(StorageBackend):
    """Local filesystem storage implementation."""

    TEMP_SUFFIX = '.part'

    def __init__(self, base_path: str):
        """
        Initialize local storage.

        Args:
            base_path: Base directory for storage
        """
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _full_path(self, path: str) -> Path:
        """Get full path from a relative path, or an absolute one inside the base."""
        full_path = (self.base_path / path).resolve()
        try:
            full_path.relative_to(self.base_path)
        except ValueError:
            raise StoragePermissionError(f"Path '{path}' is outside base directory")
        return full_path

    def relative_path(self, full_path: Path) -> str:
        return Path(full_path).resolve().relative_to(self.base_path).as_posix()

    def local_path(self, path: str) -> Path:
        return self._full_path(path)

    def exists(self, path: str) -> bool:
        return self._full_path(path).exists()

    def get_metadata(self, path: str) -> StorageMetadata:
        full_path = self._full_path(path)
        try:
            stat = full_path.stat()
        except FileNotFoundError:
            raise StorageNotFoundError(f"File not found: {path}")

        return StorageMetadata(
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime),
        )

    def ensure_directory(self, path: str) -> None:
        self._full_path(path).mkdir(parents=True, exist_ok=True)

    def list_directories(self, path: str) -> List[str]:
        full_path = self._full_path(path)
        if not full_path.is_dir():
            return []
        return sorted(entry.name for entry in full_path.iterdir()
                      if entry.is_dir() and not entry.name.startswith('.'))

    def open_temp(self, directory: str) -> Tuple[str, BinaryIO]:
        full_dir = self._full_path(directory)
        fd, temp_name = tempfile.mkstemp(dir=full_dir, prefix='.upload-', suffix=self.TEMP_SUFFIX)
        return self.relative_path(Path(temp_name)), os.fdopen(fd, 'wb')

    def claim(self, temp_path: str, final_path: str) -> bool:
        # link() fails with EEXIST instead of replacing, unlike rename()
        try:
            os.link(self._full_path(temp_path), self._full_path(final_path))
        except FileExistsError:
            return False
        except OSError as e:
            if e.errno == errno.EEXIST:
                return False
            raise
        return True

    def save(self, path: str, data: bytes) -> None:
        full_path = self._full_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(data)

    def load_data(self, path: str) -> bytes:
        full_path = self._full_path(path)
        if not full_path.exists():
            raise StorageNotFoundError(f"File not found: {path}")
        return full_path.read_bytes()

    def delete(self, path: str) -> bool:
        full_path = self._full_path(path)
        try:
            full_path.unlink()
        except FileNotFoundError:
            return False
        return True
