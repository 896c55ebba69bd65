"""
Storage backends for MediaDrop.
"""

from .abstract import (
    StorageBackend,
    LocalStorage,
    StorageMetadata,
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
)

__all__ = [
    'StorageBackend',
    'LocalStorage',
    'StorageMetadata',
    'StorageError',
    'StorageNotFoundError',
    'StoragePermissionError',
]
