"""
Upload ingestion pipeline.
"""

from .album_settings import AlbumSettings
from .classifier import MediaClassifier, detect_content_type
from .coordinator import BatchCoordinator, IncomingFile, PipelineSettings, UploadResult
from .directories import DirectoryProvisioner
from .duplicates import DuplicateCheck, DuplicateDetector
from .notifications import Notifier, LoggingNotifier, NullNotifier
from .thumbnails import ThumbnailGenerator
from .tracking import Contributor, TrackingRecorder
from .writer import StorageWriter, WrittenFile

__all__ = [
    'AlbumSettings',
    'MediaClassifier',
    'detect_content_type',
    'BatchCoordinator',
    'IncomingFile',
    'PipelineSettings',
    'UploadResult',
    'DirectoryProvisioner',
    'DuplicateCheck',
    'DuplicateDetector',
    'Notifier',
    'LoggingNotifier',
    'NullNotifier',
    'ThumbnailGenerator',
    'Contributor',
    'TrackingRecorder',
    'StorageWriter',
    'WrittenFile',
]
