"""
Upload batch notifications.

The pipeline hands a contributor's batch to a Notifier once, after the
client reports its queue is empty. Message templating and delivery are
left to the Notifier implementation; LoggingNotifier only resolves the
recipients and logs the batch.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Dict, Any

from .album_settings import AlbumSettings
from ..utils.logging import StructuredLogger

logger = logging.getLogger(__name__)


class Notifier(ABC):

    def recipients(self, album: AlbumSettings) -> List[str]:
        """Addresses to notify for ``album``; empty when notifications are off"""
        if not album.notifications_enabled:
            return []
        # Preserve order, drop repeats
        return list(dict.fromkeys(album.notification_emails))

    def notify_upload_batch(self, contributor_name: str, album: AlbumSettings,
                            files: List[Dict[str, Any]]) -> bool:
        """
        Deliver one notification for a batch of uploads.

        Returns:
            True if anything was sent
        """
        if not files:
            return False

        recipients = self.recipients(album)
        if not recipients:
            return False

        self.deliver(recipients, {
            'album_id': album.id,
            'album_name': album.name,
            'contributor_name': contributor_name,
            'file_count': len(files),
            'files': [f['name'] for f in files],
        })
        return True

    @abstractmethod
    def deliver(self, recipients: List[str], payload: Dict[str, Any]) -> None:
        """Send ``payload`` to every recipient"""


class LoggingNotifier(Notifier):
    """Writes batch notifications to the application log"""

    def __init__(self):
        self.log = StructuredLogger(__name__)

    def deliver(self, recipients: List[str], payload: Dict[str, Any]) -> None:
        for email in recipients:
            self.log.info("Upload batch notification", recipient=email, **payload)


class NullNotifier(Notifier):
    """Used when notifications are disabled in config"""

    def notify_upload_batch(self, contributor_name: str, album: AlbumSettings,
                            files: List[Dict[str, Any]]) -> bool:
        return False

    def deliver(self, recipients: List[str], payload: Dict[str, Any]) -> None:
        pass
