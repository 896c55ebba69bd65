"""
Per-album settings resolved once per request
"""

from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..db.models import Album


class AlbumSettings(BaseModel):
    """Validated, immutable snapshot of an album row"""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    base_directory: str = Field(min_length=1)
    root_node_id: Optional[int] = None
    image_media_type: Optional[str] = None
    video_media_type: Optional[str] = None
    auto_organize: bool = True
    notifications_enabled: bool = False
    notification_emails: List[str] = Field(default_factory=list)

    @field_validator('image_media_type', 'video_media_type', mode='before')
    @classmethod
    def blank_override_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('notification_emails', mode='before')
    @classmethod
    def split_emails(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [email.strip() for email in v.split(',') if email.strip()]
        return v

    @classmethod
    def from_album(cls, album: Album) -> 'AlbumSettings':
        return cls(
            id=album.id,
            name=album.name,
            base_directory=album.base_directory,
            root_node_id=album.root_node_id,
            image_media_type=album.image_media_type,
            video_media_type=album.video_media_type,
            auto_organize=album.auto_organize,
            notifications_enabled=album.notifications_enabled,
            notification_emails=album.notification_emails,
        )
