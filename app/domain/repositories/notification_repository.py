"""
Notification Ledger Interface.
Data access for the notifications_log table.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional, Set

from app.domain.repositories.base import BaseRepository
from app.domain.models.notification_log import NotificationLog


class NotificationRepository(BaseRepository[NotificationLog]):
    """Ledger-specific operations."""

    def add_unique(self, entry: NotificationLog) -> Optional[NotificationLog]:
        """Insert an entry; return None when its dedup key is already taken."""
        ...

    def get_by_dedup_key(self, dedup_key: str) -> Optional[NotificationLog]:
        ...

    def distinct_reference_ids(self, type: str, reference_ids: Iterable[str]) -> Set[str]:
        """Reference ids among `reference_ids` that already have a sent entry of `type`."""
        ...

    def update_status_by_external_id(self, external_message_id: str, status: str, error: Optional[str] = None) -> int:
        """Set status on every entry carrying the provider message id; returns rows touched."""
        ...

    def list_feed(self, profile_id: str, skip: int = 0, limit: int = 20, unread_only: bool = False) -> Dict:
        """A recipient's own in-app entries, newest first, with totals."""
        ...

    def count_unread(self, profile_id: str) -> int:
        ...

    def mark_read(self, entry_id: str, profile_id: str, when: datetime) -> Optional[NotificationLog]:
        """Mark one of the recipient's own in-app entries read; other channels are not found."""
        ...

    def mark_all_read(self, profile_id: str, when: datetime) -> int:
        ...
