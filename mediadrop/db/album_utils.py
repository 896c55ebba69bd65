"""
Album management utilities for MediaDrop.

Provides functions to create, query and administer drop albums.
"""

import logging
import secrets
from typing import List, Dict, Optional, Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import Album, MediaItem, UploadRecord, utcnow

logger = logging.getLogger(__name__)


def generate_album_token() -> str:
    """Unguessable capability token for album links."""
    return secrets.token_urlsafe(32)


class AlbumManager:
    """Manages drop albums."""

    def __init__(self, session: Session):
        """Initialize with database session."""
        self.session = session

    def create_album(self, name: str, base_directory: str,
                     image_media_type: Optional[str] = None,
                     video_media_type: Optional[str] = None,
                     auto_organize: bool = True,
                     notification_emails: Optional[List[str]] = None) -> Album:
        """
        Create a new album with a fresh token.

        Args:
            name: Display name
            base_directory: Storage directory, absolute or relative to the storage root
            image_media_type: Media type forced for every ``image/*`` upload
            video_media_type: Media type forced for every ``video/*`` upload
            auto_organize: Place uploads into the category tree
            notification_emails: Recipients for upload batch notifications

        Returns:
            Album instance
        """
        album = Album(
            name=name,
            token=generate_album_token(),
            base_directory=base_directory,
            image_media_type=image_media_type,
            video_media_type=video_media_type,
            auto_organize=auto_organize,
            notifications_enabled=bool(notification_emails),
            notification_emails=', '.join(notification_emails) if notification_emails else None,
        )
        self.session.add(album)
        self.session.commit()
        logger.info(f"Created album: {name} (id {album.id})")
        return album

    def get_album(self, album_id: int) -> Optional[Album]:
        return self.session.get(Album, album_id)

    def rotate_token(self, album_id: int) -> Optional[str]:
        """
        Replace the album token, invalidating previously shared links.

        Returns:
            The new token, or None if the album does not exist
        """
        album = self.get_album(album_id)
        if not album:
            return None

        album.token = generate_album_token()
        album.updated_at = utcnow()
        self.session.commit()
        logger.info(f"Rotated token for album {album_id}")
        return album.token

    def set_active(self, album_id: int, active: bool) -> bool:
        album = self.get_album(album_id)
        if not album:
            return False

        album.is_active = active
        self.session.commit()
        logger.info(f"Album {album_id} {'activated' if active else 'deactivated'}")
        return True

    def list_albums(self, include_inactive: bool = True) -> List[Dict[str, Any]]:
        """
        List all albums with statistics.

        Returns:
            List of album information dictionaries
        """
        query = self.session.query(
            Album,
            func.count(MediaItem.id).label('media_count'),
        ).outerjoin(MediaItem, MediaItem.album_id == Album.id).group_by(Album.id)

        if not include_inactive:
            query = query.filter(Album.is_active.is_(True))

        contributor_counts = dict(
            self.session.query(UploadRecord.album_id,
                               func.count(func.distinct(UploadRecord.session_id)))
            .group_by(UploadRecord.album_id)
            .all()
        )

        results = []
        for album, media_count in query.order_by(Album.created_at.desc()).all():
            results.append({
                'id': album.id,
                'name': album.name,
                'token': album.token,
                'base_directory': album.base_directory,
                'is_active': album.is_active,
                'auto_organize': album.auto_organize,
                'media_count': media_count,
                'contributor_count': contributor_counts.get(album.id, 0),
                'created_at': album.created_at,
            })
        return results
