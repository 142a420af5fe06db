"""Visitor — first-time guest awaiting follow-up.

`escalated_at` is the SLA escalation marker: once set, the visitor is never
escalated again.
"""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.infrastructure.database import Base

OPEN_STATUSES = ("new", "assigned", "contacted")
SLA_STATUSES = ("new", "assigned")


class Visitor(Base):
    __tablename__ = "visitors"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    visited_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    status = Column(String(16), nullable=False, default="new", index=True)  # new, assigned, contacted, converted, lost
    assigned_to = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    contacted_at = Column(DateTime(timezone=True), nullable=True)
    escalated_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<Visitor {self.full_name} - {self.status}>"
