"""Church events and registrations."""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.infrastructure.database import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    title_ar = Column(String(300), nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=False, index=True)
    location = Column(String(300), nullable=True)
    status = Column(String(16), nullable=False, default="draft", index=True)  # draft, published, cancelled


class EventRegistration(Base):
    __tablename__ = "event_registrations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    profile_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)  # null for guest signups
    status = Column(String(16), nullable=False, default="confirmed")  # confirmed, waitlisted, cancelled
    created_at = Column(DateTime(timezone=True), server_default=func.now())
