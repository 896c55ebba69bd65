"""
Database models for MediaDrop.

Defines the SQLAlchemy ORM models for albums, stored media items, upload
ownership records, the category tree and the MIME type mapping table.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    ForeignKey, Index, BigInteger, UniqueConstraint
)
from sqlalchemy.orm import relationship, declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def utcnow() -> datetime:
    """Current time as naive UTC, the form every DateTime column holds"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Album(Base):
    """Token-addressed upload destination."""
    __tablename__ = 'albums'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    token = Column(String(64), unique=True, nullable=False, index=True)
    base_directory = Column(Text, nullable=False)

    # Category tree placement
    root_node_id = Column(Integer, ForeignKey('category_nodes.id', ondelete='SET NULL'))
    auto_organize = Column(Boolean, default=True, nullable=False)

    # Classification overrides
    image_media_type = Column(String(64))
    video_media_type = Column(String(64))

    # Notifications
    notifications_enabled = Column(Boolean, default=False, nullable=False)
    notification_emails = Column(Text)  # comma separated

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    root_node = relationship("CategoryNode", foreign_keys=[root_node_id])
    media_items = relationship("MediaItem", back_populates="album", cascade="all, delete-orphan")
    upload_records = relationship("UploadRecord", back_populates="album", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Album(id={self.id}, name='{self.name}', active={self.is_active})>"


class MediaItem(Base):
    """A stored file and its classification. Never mutated after creation."""
    __tablename__ = 'media_items'

    id = Column(Integer, primary_key=True)
    album_id = Column(Integer, ForeignKey('albums.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(255), nullable=False)
    media_type = Column(String(64), nullable=False, index=True)
    mime_type = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    file_size = Column(BigInteger, nullable=False)
    thumbnail_path = Column(Text)
    category_node_id = Column(Integer, ForeignKey('category_nodes.id', ondelete='SET NULL'))
    owner_uid = Column(Integer)
    created_at = Column(DateTime, default=func.now())

    album = relationship("Album", back_populates="media_items")
    category_node = relationship("CategoryNode", back_populates="media_items")
    upload_record = relationship("UploadRecord", back_populates="media_item",
                                 uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_media_album_created', 'album_id', 'created_at'),
        Index('idx_media_category_node', 'category_node_id'),
    )

    def __repr__(self):
        return f"<MediaItem(id={self.id}, name='{self.name}', type='{self.media_type}')>"


class UploadRecord(Base):
    """Ownership and audit record binding a media item to its contributor."""
    __tablename__ = 'upload_records'

    id = Column(Integer, primary_key=True)
    album_id = Column(Integer, ForeignKey('albums.id', ondelete='CASCADE'), nullable=False)
    media_item_id = Column(Integer, ForeignKey('media_items.id', ondelete='CASCADE'),
                           nullable=False, unique=True)
    owner_uid = Column(Integer)
    session_id = Column(String(128), nullable=False)
    contributor_name = Column(String(255), nullable=False)
    sub_label = Column(String(255), default='', nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    album = relationship("Album", back_populates="upload_records")
    media_item = relationship("MediaItem", back_populates="upload_record")

    __table_args__ = (
        Index('idx_upload_session_album', 'session_id', 'album_id'),
        Index('idx_upload_owner_album', 'owner_uid', 'album_id'),
        Index('idx_upload_album_created', 'album_id', 'created_at'),
    )

    def __repr__(self):
        return (f"<UploadRecord(id={self.id}, media_item_id={self.media_item_id}, "
                f"contributor='{self.contributor_name}')>")


class CategoryNode(Base):
    """
    Node of the hierarchical organization tree.

    ``parent_key`` mirrors ``parent_id`` with 0 for top-level nodes so the
    unique constraint also covers siblings without a parent.
    """
    __tablename__ = 'category_nodes'

    id = Column(Integer, primary_key=True)
    tree_id = Column(String(64), nullable=False)
    label = Column(String(255), nullable=False)
    normalized_label = Column(String(255), nullable=False)
    parent_id = Column(Integer, ForeignKey('category_nodes.id', ondelete='CASCADE'))
    parent_key = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=func.now())

    parent = relationship("CategoryNode", foreign_keys=[parent_id], remote_side=[id],
                          backref="children")
    media_items = relationship("MediaItem", back_populates="category_node")

    __table_args__ = (
        UniqueConstraint('tree_id', 'parent_key', 'normalized_label',
                         name='uq_category_node_sibling_label'),
        Index('idx_category_node_parent', 'tree_id', 'parent_id'),
    )

    def __repr__(self):
        return f"<CategoryNode(id={self.id}, tree='{self.tree_id}', label='{self.label}')>"


class MimeMapping(Base):
    """Maps a MIME type or fnmatch pattern such as ``video/*`` to a media type."""
    __tablename__ = 'mime_mappings'

    id = Column(Integer, primary_key=True)
    mime_type = Column(String(255), unique=True, nullable=False)
    media_type = Column(String(64), nullable=False)
    weight = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index('idx_mime_mapping_weight', 'weight', 'mime_type'),
    )

    def __repr__(self):
        return f"<MimeMapping('{self.mime_type}' -> '{self.media_type}', weight={self.weight})>"


DEFAULT_MIME_MAPPINGS = [
    ('image/jpeg', 'image', 0),
    ('image/png', 'image', 0),
    ('image/gif', 'image', 0),
    ('image/webp', 'image', 0),
    ('image/heic', 'image', 0),
    ('video/mp4', 'video', 0),
    ('video/quicktime', 'video', 0),
    ('video/webm', 'video', 0),
    ('image/*', 'image', 10),
    ('video/*', 'video', 10),
]
