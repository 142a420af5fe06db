"""Group gatherings and per-member attendance."""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from app.infrastructure.database import Base

ATTENDED_STATUSES = ("present", "late", "excused")


class Gathering(Base):
    __tablename__ = "gatherings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    group_id = Column(String(36), ForeignKey("groups.id"), nullable=False, index=True)
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=False, index=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    location = Column(String(300), nullable=True)
    topic = Column(String(300), nullable=True)
    status = Column(String(16), nullable=False, default="scheduled", index=True)  # scheduled, in_progress, completed, cancelled


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (UniqueConstraint("gathering_id", "profile_id", name="uq_attendance_gathering_profile"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    gathering_id = Column(String(36), ForeignKey("gatherings.id"), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("groups.id"), nullable=False)
    profile_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=False)
    status = Column(String(16), nullable=False)  # present, absent, excused, late
    marked_at = Column(DateTime(timezone=True), server_default=func.now())
