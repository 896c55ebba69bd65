"""
Database operations for MediaDrop.

Provides lookups and CRUD used by the HTTP layer and the CLI for albums and
the MIME type mapping table.
"""

import logging
from typing import Optional, List, Tuple

from sqlalchemy.exc import IntegrityError

from .connection import DatabaseManager
from .models import Album, MimeMapping, DEFAULT_MIME_MAPPINGS
from ..errors import AlbumNotFound, AlbumInactive

logger = logging.getLogger(__name__)


class AlbumOperations:
    """Token resolution for albums."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get_by_token(self, token: str) -> Optional[Album]:
        """Get album by capability token, active or not."""
        with self.db.session_scope() as session:
            return session.query(Album).filter(Album.token == token).first()

    def resolve_active(self, token: str) -> Album:
        """
        Resolve a token to an active album.

        Raises:
            AlbumNotFound: No album has this token
            AlbumInactive: The album has been deactivated
        """
        album = self.get_by_token(token) if token else None
        if album is None:
            raise AlbumNotFound("Invalid album token")
        if not album.is_active:
            raise AlbumInactive("This album is not accepting uploads")
        return album


class MimeMappingOperations:
    """CRUD for the MIME type to media type table."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def ordered_patterns(self) -> List[Tuple[str, str]]:
        """Return ``(pattern, media_type)`` pairs ordered by weight then MIME type."""
        with self.db.session_scope() as session:
            rows = (session.query(MimeMapping.mime_type, MimeMapping.media_type)
                    .order_by(MimeMapping.weight, MimeMapping.mime_type)
                    .all())
            return [(row.mime_type, row.media_type) for row in rows]

    def list_mappings(self) -> List[MimeMapping]:
        with self.db.session_scope() as session:
            return (session.query(MimeMapping)
                    .order_by(MimeMapping.weight, MimeMapping.mime_type)
                    .all())

    def add_mapping(self, mime_type: str, media_type: str, weight: int = 0) -> MimeMapping:
        """
        Add a mapping.

        Raises:
            ValueError: A mapping for ``mime_type`` already exists
        """
        mime_type = mime_type.strip().lower()
        try:
            with self.db.session_scope() as session:
                mapping = MimeMapping(mime_type=mime_type, media_type=media_type, weight=weight)
                session.add(mapping)
        except IntegrityError:
            raise ValueError(f"A mapping for '{mime_type}' already exists")
        logger.info(f"Added MIME mapping {mime_type} -> {media_type} (weight {weight})")
        return mapping

    def remove_mapping(self, mime_type: str) -> bool:
        with self.db.session_scope() as session:
            deleted = (session.query(MimeMapping)
                       .filter(MimeMapping.mime_type == mime_type.strip().lower())
                       .delete())
        if deleted:
            logger.info(f"Removed MIME mapping {mime_type}")
        return bool(deleted)

    def seed_defaults(self) -> int:
        """Insert the default mappings that are not present yet."""
        added = 0
        with self.db.session_scope() as session:
            existing = {row.mime_type for row in session.query(MimeMapping.mime_type)}
            for mime_type, media_type, weight in DEFAULT_MIME_MAPPINGS:
                if mime_type not in existing:
                    session.add(MimeMapping(mime_type=mime_type, media_type=media_type,
                                            weight=weight))
                    added += 1
        logger.info(f"Seeded {added} default MIME mappings")
        return added
