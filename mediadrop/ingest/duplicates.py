"""
Name and size duplicate detection.

A file counts as a duplicate when a file with the same name and the same
byte size already exists at the target path. This is a weak heuristic: two
different photos that happen to share name and size are treated as one
(false positive), and the same content under another name is accepted again
(false negative). No content hashing is done.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..storage import StorageBackend, StorageNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class DuplicateCheck:
    """Result of a duplicate probe"""
    is_duplicate: bool
    existing_path: Optional[str] = None
    existing_size: Optional[int] = None


class DuplicateDetector:

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def check(self, path: str, size: Optional[int]) -> DuplicateCheck:
        """
        Probe ``path`` for an existing file of ``size`` bytes.

        A None size (unknown upfront) never matches.
        """
        try:
            existing_size = self.storage.get_size(path)
        except StorageNotFoundError:
            return DuplicateCheck(is_duplicate=False)

        if size is not None and existing_size == size:
            logger.debug(f"Duplicate detected: {path} ({size} bytes)")
            return DuplicateCheck(is_duplicate=True, existing_path=path,
                                  existing_size=existing_size)

        return DuplicateCheck(is_duplicate=False, existing_path=path,
                              existing_size=existing_size)
