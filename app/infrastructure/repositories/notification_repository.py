"""
SQLAlchemy Implementation of the Notification Ledger.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.domain.models.notification_log import NotificationLog, SENT_STATUSES
from app.domain.repositories.notification_repository import NotificationRepository
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyNotificationRepository(SQLAlchemyRepository[NotificationLog], NotificationRepository):
    """Notification ledger backed by the notifications_log table."""

    def __init__(self, db: Session):
        super().__init__(db, NotificationLog)

    def add_unique(self, entry: NotificationLog) -> Optional[NotificationLog]:
        # The unique dedup_key is the idempotency guard: a concurrent run
        # inserting the same key loses here instead of sending twice.
        dedup_key = entry.dedup_key
        self.db.add(entry)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if dedup_key and self.get_by_dedup_key(dedup_key) is not None:
                return None
            raise
        self.db.refresh(entry)
        return entry

    def get_by_dedup_key(self, dedup_key: str) -> Optional[NotificationLog]:
        return (
            self.db.query(NotificationLog)
            .filter(NotificationLog.dedup_key == dedup_key)
            .first()
        )

    def distinct_reference_ids(self, type: str, reference_ids: Iterable[str]) -> Set[str]:
        ids = list(reference_ids)
        if not ids:
            return set()
        rows = (
            self.db.query(NotificationLog.reference_id)
            .filter(
                NotificationLog.type == type,
                NotificationLog.reference_id.in_(ids),
                NotificationLog.status.in_(SENT_STATUSES),
            )
            .distinct()
            .all()
        )
        return {r[0] for r in rows}

    def update_status_by_external_id(self, external_message_id: str, status: str, error: Optional[str] = None) -> int:
        values = {NotificationLog.status: status}
        if error:
            values[NotificationLog.error] = error
        count = (
            self.db.query(NotificationLog)
            .filter(NotificationLog.external_message_id == external_message_id)
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        return count

    def _feed_query(self, profile_id: str):
        return self.db.query(NotificationLog).filter(
            NotificationLog.profile_id == profile_id,
            NotificationLog.channel == "in_app",
        )

    def list_feed(self, profile_id: str, skip: int = 0, limit: int = 20, unread_only: bool = False) -> Dict:
        query = self._feed_query(profile_id)
        if unread_only:
            query = query.filter(NotificationLog.read_at.is_(None))
        total = query.count()
        items = (
            query.order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return {"items": items, "total": total}

    def count_unread(self, profile_id: str) -> int:
        return self._feed_query(profile_id).filter(NotificationLog.read_at.is_(None)).count()

    def mark_read(self, entry_id: str, profile_id: str, when: datetime) -> Optional[NotificationLog]:
        entry = self._feed_query(profile_id).filter(NotificationLog.id == entry_id).first()
        if entry is None:
            return None
        if entry.read_at is None:
            entry.read_at = when
            entry.status = "read"
            self.db.commit()
            self.db.refresh(entry)
        return entry

    def mark_all_read(self, profile_id: str, when: datetime) -> int:
        count = (
            self._feed_query(profile_id)
            .filter(NotificationLog.read_at.is_(None))
            .update(
                {NotificationLog.read_at: when, NotificationLog.status: "read"},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return count
