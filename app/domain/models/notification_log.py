"""Notification log — the ledger of every notification attempt and its delivery status."""

import uuid

from sqlalchemy import Column, String, Text, DateTime, JSON, ForeignKey, Index
from sqlalchemy.sql import func

from app.infrastructure.database import Base

CHANNELS = ("in_app", "whatsapp", "sms", "email")
STATUSES = ("queued", "sent", "delivered", "read", "failed")
# Statuses that prove the message left our hands
SENT_STATUSES = ("sent", "delivered", "read")


class NotificationLog(Base):
    __tablename__ = "notifications_log"
    __table_args__ = (
        Index("ix_notifications_log_type_reference", "type", "reference_id"),
        Index("ix_notifications_log_feed", "profile_id", "channel", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=False, index=True)
    profile_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    recipient_phone = Column(String(32), nullable=True)  # visitors contacted without a profile
    channel = Column(String(16), nullable=False)
    type = Column(String(50), nullable=False)
    title_en = Column(Text, nullable=True)
    title_ar = Column(Text, nullable=True)
    body_en = Column(Text, nullable=True)
    body_ar = Column(Text, nullable=True)
    locale = Column(String(8), nullable=True)
    payload = Column(JSON, nullable=True)
    reference_id = Column(String(36), nullable=True)
    reference_type = Column(String(50), nullable=True)
    external_message_id = Column(String(255), nullable=True, index=True)
    status = Column(String(16), nullable=False, default="queued")  # queued, sent, delivered, read, failed
    error = Column(Text, nullable=True)
    # type:reference:recipient:channel; unique while the attempt is alive, released on failure
    dedup_key = Column(String(255), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    sent_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def recipient(self) -> str:
        return self.profile_id or self.recipient_phone or ""

    def __repr__(self):
        return f"<NotificationLog {self.type} {self.channel} -> {self.recipient} - {self.status}>"
