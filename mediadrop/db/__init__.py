"""
MediaDrop Database Module

Provides database models, operations, and connection management.
"""

from .connection import DatabaseManager
from .models import Base, Album, MediaItem, UploadRecord, CategoryNode, MimeMapping
from .operations import AlbumOperations, MimeMappingOperations
from .album_utils import AlbumManager, generate_album_token

__all__ = [
    'DatabaseManager',
    'AlbumOperations',
    'MimeMappingOperations',
    'AlbumManager',
    'generate_album_token',
    # Models
    'Base',
    'Album',
    'MediaItem',
    'UploadRecord',
    'CategoryNode',
    'MimeMapping',
]
