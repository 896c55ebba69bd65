"""
Batch coordinator for upload submissions.

Drives every file of one submission through validation, classification,
duplicate detection, storage, directory placement and tracking, collecting
one result per file. A failing file never aborts its siblings.

Per-file flow::

    Validating -> Classifying -> DedupCheck -> Skipped (duplicate)
                                            -> Storing -> Placing -> Tracking -> Recorded
"""

import logging
import posixpath
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .album_settings import AlbumSettings
from .classifier import MediaClassifier, detect_content_type
from .directories import DirectoryProvisioner
from .duplicates import DuplicateCheck, DuplicateDetector
from .notifications import Notifier
from .tracking import Contributor, TrackingRecorder
from .writer import StorageWriter, WrittenFile
from ..config.security import check_file_upload_security
from ..errors import (
    DuplicateContent, FileError, InvalidUpload, ProvisionConflict,
    ProvisionError, TrackingError, WriteError
)
from ..storage import StorageBackend, StorageError
from ..utils.logging import StructuredLogger, BatchStats
from ..utils.naming import normalize_label, safe_basename

logger = logging.getLogger(__name__)

FAILURE_POLICIES = ('rollback', 'keep')


@dataclass
class IncomingFile:
    """One file part of a submission"""
    filename: str
    content_type: Optional[str]
    stream: BinaryIO
    size: Optional[int] = None


@dataclass
class UploadResult:
    """Outcome of one file"""
    filename: str
    success: bool
    object_id: Optional[int] = None
    media_type: Optional[str] = None
    has_thumbnail: bool = False
    is_duplicate: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self, thumbnail_url: Optional[str] = None) -> Dict[str, Any]:
        result = {'filename': self.filename, 'success': self.success}
        if self.object_id is not None:
            result['object_id'] = self.object_id
            result['media_type'] = self.media_type
        if thumbnail_url:
            result['thumbnail_url'] = thumbnail_url
        if self.error:
            result['error'] = self.error
        if self.is_duplicate:
            result['is_duplicate'] = True
        return result


@dataclass
class PipelineSettings:
    """Service-wide limits and policies"""
    max_file_size: int = 50 * 1024 * 1024
    allowed_extensions: List[str] = field(default_factory=list)
    write_timeout: float = 120.0
    tracking_failure_policy: str = 'rollback'
    notifications_enabled: bool = True
    notification_window: int = 60

    def __post_init__(self):
        if self.tracking_failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"tracking.failure_policy must be one of {FAILURE_POLICIES}, "
                             f"got '{self.tracking_failure_policy}'")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'PipelineSettings':
        uploads = config.get('uploads', {})
        notifications = config.get('notifications', {})
        return cls(
            max_file_size=int(uploads.get('max_filesize_mb', 50) * 1024 * 1024),
            allowed_extensions=list(uploads.get('allowed_extensions', [])),
            write_timeout=float(config.get('storage', {}).get('write_timeout', 120)),
            tracking_failure_policy=config.get('tracking', {}).get('failure_policy', 'rollback'),
            notifications_enabled=notifications.get('enabled', True),
            notification_window=int(notifications.get('window_seconds', 60)),
        )


class BatchCoordinator:
    """Runs upload submissions through the ingestion pipeline"""

    def __init__(self, classifier: MediaClassifier, detector: DuplicateDetector,
                 writer: StorageWriter, provisioner: DirectoryProvisioner,
                 recorder: TrackingRecorder, notifier: Notifier,
                 storage: StorageBackend, settings: PipelineSettings):
        self.classifier = classifier
        self.detector = detector
        self.writer = writer
        self.provisioner = provisioner
        self.recorder = recorder
        self.notifier = notifier
        self.storage = storage
        self.settings = settings
        self.log = StructuredLogger(__name__)

    # Layout

    @staticmethod
    def contributor_directory(album: AlbumSettings, contributor_name: str,
                              sub_label: Optional[str] = None) -> str:
        """``{base}/{contributor}`` or ``{base}/{contributor}/{sub_label}``"""
        directory = posixpath.join(album.base_directory, normalize_label(contributor_name))
        if sub_label and sub_label.strip():
            directory = posixpath.join(directory, normalize_label(sub_label))
        return directory

    # Submission

    def process_submission(self, album: AlbumSettings, contributor: Contributor,
                           files: List[IncomingFile],
                           sub_label: Optional[str] = None) -> List[UploadResult]:
        """
        Ingest every file of a submission.

        Returns:
            One UploadResult per file, in submission order
        """
        log = self.log.bind(album_id=album.id, session=contributor.session_id)
        stats = BatchStats(total_files=len(files))
        log.info("Submission received", files=len(files), contributor=contributor.name)

        results = []
        for incoming in files:
            result = self._process_file(album, contributor, incoming, sub_label)
            results.append(result)

            if result.is_duplicate:
                stats.add_duplicate()
            elif result.success:
                stats.add_stored(incoming.size or 0)
            else:
                stats.add_failure(result.filename, result.error_code or 'FILE_ERROR',
                                  result.error or '')

        log.info("Submission completed", **stats.get_summary())
        return results

    def _process_file(self, album: AlbumSettings, contributor: Contributor,
                      incoming: IncomingFile, sub_label: Optional[str]) -> UploadResult:
        filename = safe_basename(incoming.filename or '')
        try:
            return self._ingest(album, contributor, incoming, filename, sub_label)
        except DuplicateContent as e:
            return UploadResult(filename=filename, success=False, is_duplicate=True,
                                error=str(e), error_code=e.error_code)
        except FileError as e:
            logger.warning(f"Upload of '{filename}' failed: {e}")
            return UploadResult(filename=filename, success=False, error=str(e),
                                error_code=e.error_code)
        except (SQLAlchemyError, StorageError, OSError) as e:
            logger.error(f"Upload of '{filename}' failed: {e}")
            error = WriteError(f"Failed to store file: {e}", filename)
            return UploadResult(filename=filename, success=False, error=str(error),
                                error_code=error.error_code)

    def _ingest(self, album: AlbumSettings, contributor: Contributor,
                incoming: IncomingFile, filename: str,
                sub_label: Optional[str]) -> UploadResult:
        deadline = time.monotonic() + self.settings.write_timeout

        # Validating
        check = check_file_upload_security(incoming.filename or '', incoming.size,
                                           self.settings.allowed_extensions,
                                           self.settings.max_file_size)
        if not check['valid']:
            raise InvalidUpload('; '.join(check['issues']), filename)

        # Classifying
        content_type = detect_content_type(filename, incoming.content_type)
        media_type = self.classifier.classify(content_type, album)

        # DedupCheck
        directory = self.contributor_directory(album, contributor.name, sub_label)
        target = posixpath.join(directory, filename)
        existing = self.detector.check(target, incoming.size)
        if existing.is_duplicate:
            raise DuplicateContent(existing.existing_path, filename)

        # Storing
        written = self.writer.write(incoming.stream, directory, filename, deadline)
        if written.size > self.settings.max_file_size:
            self.writer.discard(written)
            raise InvalidUpload("File exceeds the maximum allowed size", filename)

        # Placing
        try:
            node_id = self._place(album, contributor, sub_label)
            item = self.writer.create_object(album.id, written, media_type, content_type,
                                             category_node_id=node_id,
                                             owner_uid=contributor.owner_uid)
        except FileError:
            self.writer.discard(written)
            raise

        # Tracking
        try:
            self.recorder.record(album.id, item.id, contributor, sub_label)
        except TrackingError as e:
            return self._tracking_failed(written, item.id, e)

        return UploadResult(
            filename=written.filename,
            success=True,
            object_id=item.id,
            media_type=media_type,
            has_thumbnail=bool(item.thumbnail_path),
        )

    def _place(self, album: AlbumSettings, contributor: Contributor,
               sub_label: Optional[str]) -> Optional[int]:
        if not album.auto_organize:
            return album.root_node_id
        return self._ensure_node(album, contributor.name, sub_label)

    def _ensure_node(self, album: AlbumSettings, contributor_name: str,
                     sub_label: Optional[str]) -> Optional[int]:
        # Nodes carry the same normalized names as the on-disk folders
        try:
            return self.provisioner.ensure_directory_node(
                album,
                normalize_label(contributor_name),
                normalize_label(sub_label) if sub_label and sub_label.strip() else None,
            )
        except ProvisionConflict as e:
            logger.error(f"Giving up on directory node: {e}")
            raise ProvisionError("Could not create the destination directory")
        except SQLAlchemyError as e:
            logger.error(f"Directory provisioning failed: {e}")
            raise ProvisionError("Could not create the destination directory")

    def _tracking_failed(self, written: WrittenFile, media_item_id: int,
                         error: TrackingError) -> UploadResult:
        if self.settings.tracking_failure_policy == 'keep':
            logger.warning(f"Keeping {written.path} without an ownership record")
            return UploadResult(filename=written.filename, success=True,
                                object_id=media_item_id,
                                error="Stored, but the upload could not be linked to you",
                                error_code=error.error_code)

        self.writer.discard(written, media_item_id)
        raise error

    # Pre-upload probe

    def check_duplicate(self, album: AlbumSettings, contributor_name: str, filename: str,
                        size: Optional[int], sub_label: Optional[str] = None) -> DuplicateCheck:
        directory = self.contributor_directory(album, contributor_name, sub_label)
        return self.detector.check(posixpath.join(directory, safe_basename(filename)), size)

    # Folders

    def list_folders(self, album: AlbumSettings, contributor_name: str) -> List[Dict[str, str]]:
        """Sub-folders that exist on disk for the contributor"""
        directory = self.contributor_directory(album, contributor_name)
        return [{'safe_name': name, 'name': name}
                for name in self.storage.list_directories(directory)]

    def create_folder(self, album: AlbumSettings, contributor_name: str,
                      folder_name: str) -> Dict[str, Any]:
        """
        Create a contributor sub-folder and, with the tree enabled, its node.

        Raises:
            InvalidUpload: The folder name normalizes to nothing
            WriteError: The folder could not be created
            ProvisionError: The directory node could not be created
        """
        safe_folder = normalize_label(folder_name)
        if not safe_folder:
            raise InvalidUpload("Folder name is required")

        directory = self.contributor_directory(album, contributor_name, folder_name)
        try:
            self.storage.ensure_directory(directory)
        except (OSError, StorageError) as e:
            raise WriteError(f"Could not create folder: {e}")

        node_id = None
        if album.auto_organize:
            node_id = self._ensure_node(album, contributor_name, folder_name)

        logger.info(f"Created folder {directory} (node {node_id})")
        return {
            'success': True,
            'folder_name': folder_name,
            'safe_folder_name': safe_folder,
            'node_id': node_id,
        }

    # Flush

    def flush_notifications(self, album: AlbumSettings, contributor: Contributor) -> int:
        """
        Send one notification for the contributor's recent uploads.

        "Recent" means recorded within the trailing notification window,
        an approximation of the batch the client just finished.

        Returns:
            Number of files reported, 0 when nothing was sent
        """
        if not self.settings.notifications_enabled:
            return 0

        files = self.recorder.recent_for_owner(album.id, contributor,
                                               self.settings.notification_window)
        if not files:
            return 0

        if not self.notifier.notify_upload_batch(contributor.name, album, files):
            return 0

        self.log.info("Batch notification sent", album_id=album.id,
                      contributor=contributor.name, files=len(files))
        return len(files)
