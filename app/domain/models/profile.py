"""Profile — a church member, managed by the directory collaborator.

The engagement subsystem reads contact data and preferences from here and
performs exactly one write: the active → at_risk status transition.
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.infrastructure.database import Base

ROLES = ("member", "group_leader", "ministry_leader", "super_admin")
LEADERSHIP_ROLES = ("ministry_leader", "super_admin")
STATUSES = ("active", "inactive", "at_risk", "visitor")
NOTIFICATION_PREFS = ("whatsapp", "sms", "email", "all", "none")


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)  # issued by the identity provider
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    first_name_ar = Column(String(100), nullable=True)
    last_name_ar = Column(String(100), nullable=True)
    phone = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    gender = Column(String(10), nullable=True)  # male, female
    role = Column(String(32), nullable=False, default="member", index=True)
    status = Column(String(16), nullable=False, default="active", index=True)
    notification_pref = Column(String(16), nullable=False, default="all")
    preferred_language = Column(String(8), nullable=True)
    onboarding_completed = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def display_name(self) -> str:
        first = self.first_name_ar or self.first_name or ""
        last = self.last_name_ar or self.last_name or ""
        return f"{first} {last}".strip()

    def __repr__(self):
        return f"<Profile {self.id} - {self.status}>"
