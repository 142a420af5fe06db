"""Ministries, groups and group membership (directory read-models)."""

import uuid

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from app.infrastructure.database import Base


class Ministry(Base):
    __tablename__ = "ministries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    name_ar = Column(String(200), nullable=True)
    leader_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    is_active = Column(Boolean, default=True)


class Group(Base):
    __tablename__ = "groups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=False, index=True)
    ministry_id = Column(String(36), ForeignKey("ministries.id"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    name_ar = Column(String(200), nullable=True)
    leader_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    is_active = Column(Boolean, default=True)

    @property
    def display_name(self) -> str:
        return self.name_ar or self.name


class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (UniqueConstraint("group_id", "profile_id", name="uq_group_member"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    group_id = Column(String(36), ForeignKey("groups.id"), nullable=False, index=True)
    profile_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())
