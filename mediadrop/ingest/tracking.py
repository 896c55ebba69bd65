"""
Upload ownership tracking.

Every stored file gets exactly one UploadRecord naming its contributor.
Anonymous contributors are scoped by session id within an album,
authenticated ones by user id.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, List, Dict, Any

from sqlalchemy.exc import SQLAlchemyError

from ..db.connection import DatabaseManager
from ..db.models import MediaItem, UploadRecord, utcnow
from ..errors import TrackingError
from ..storage import StorageBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Contributor:
    """Who is uploading"""
    name: str
    session_id: str
    owner_uid: Optional[int] = None

    @property
    def is_authenticated(self) -> bool:
        return self.owner_uid is not None


class TrackingRecorder:

    def __init__(self, db: DatabaseManager, storage: StorageBackend):
        self.db = db
        self.storage = storage

    @staticmethod
    def _owner_filter(contributor: Contributor):
        if contributor.is_authenticated:
            return UploadRecord.owner_uid == contributor.owner_uid
        return UploadRecord.session_id == contributor.session_id

    def record(self, album_id: int, media_item_id: int, contributor: Contributor,
               sub_label: Optional[str] = None) -> int:
        """
        Append the ownership record for a stored media item.

        Raises:
            TrackingError: The record could not be written
        """
        try:
            with self.db.session_scope() as session:
                record = UploadRecord(
                    album_id=album_id,
                    media_item_id=media_item_id,
                    owner_uid=contributor.owner_uid,
                    session_id=contributor.session_id,
                    contributor_name=contributor.name,
                    sub_label=sub_label or '',
                    created_at=utcnow(),
                )
                session.add(record)
                session.flush()
                record_id = record.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to record upload of media item {media_item_id}: {e}")
            raise TrackingError("Failed to record upload ownership")

        return record_id

    def list_for_owner(self, album_id: int, contributor: Contributor) -> List[Dict[str, Any]]:
        """The contributor's uploads to an album, newest first."""
        with self.db.session_scope() as session:
            rows = (session.query(UploadRecord, MediaItem)
                    .join(MediaItem, MediaItem.id == UploadRecord.media_item_id)
                    .filter(UploadRecord.album_id == album_id, self._owner_filter(contributor))
                    .order_by(UploadRecord.created_at.desc(), UploadRecord.id.desc())
                    .all())
            return [_describe(record, item) for record, item in rows]

    def recent_for_owner(self, album_id: int, contributor: Contributor,
                         window_seconds: int) -> List[Dict[str, Any]]:
        """Uploads recorded for the contributor within the trailing window."""
        since = utcnow() - timedelta(seconds=window_seconds)
        with self.db.session_scope() as session:
            rows = (session.query(UploadRecord, MediaItem)
                    .join(MediaItem, MediaItem.id == UploadRecord.media_item_id)
                    .filter(UploadRecord.album_id == album_id,
                            self._owner_filter(contributor),
                            UploadRecord.created_at >= since)
                    .order_by(UploadRecord.created_at, UploadRecord.id)
                    .all())
            return [_describe(record, item) for record, item in rows]

    def find_owned(self, album_id: int, contributor: Contributor,
                   media_item_id: int) -> Optional[MediaItem]:
        with self.db.session_scope() as session:
            return (session.query(MediaItem)
                    .join(UploadRecord, UploadRecord.media_item_id == MediaItem.id)
                    .filter(MediaItem.id == media_item_id,
                            UploadRecord.album_id == album_id,
                            self._owner_filter(contributor))
                    .first())

    def delete_owned(self, album_id: int, contributor: Contributor, media_item_id: int) -> bool:
        """
        Delete an upload owned by the contributor.

        Removes the media item (its record goes with it) and the stored
        file and thumbnail.

        Returns:
            False when the item does not exist or belongs to someone else
        """
        with self.db.session_scope() as session:
            item = (session.query(MediaItem)
                    .join(UploadRecord, UploadRecord.media_item_id == MediaItem.id)
                    .filter(MediaItem.id == media_item_id,
                            UploadRecord.album_id == album_id,
                            self._owner_filter(contributor))
                    .first())
            if item is None:
                return False
            paths = [item.file_path, item.thumbnail_path]
            session.delete(item)

        for path in paths:
            if path:
                self.storage.delete(path)

        logger.info(f"Deleted media item {media_item_id} for {contributor.session_id}")
        return True


def _describe(record: UploadRecord, item: MediaItem) -> Dict[str, Any]:
    return {
        'id': item.id,
        'name': item.name,
        'media_type': item.media_type,
        'mime_type': item.mime_type,
        'file_size': item.file_size,
        'has_thumbnail': bool(item.thumbnail_path),
        'contributor_name': record.contributor_name,
        'sub_label': record.sub_label,
        'created_at': record.created_at.isoformat() if record.created_at else None,
    }
