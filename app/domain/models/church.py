"""Church — tenant record holding locale, timezone and visitor SLA."""

import uuid

from sqlalchemy import Column, String, Integer, Boolean, DateTime
from sqlalchemy.sql import func

from app.infrastructure.database import Base


class Church(Base):
    __tablename__ = "churches"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    name_ar = Column(String(200), nullable=True)
    timezone = Column(String(64), nullable=True)
    primary_language = Column(String(8), nullable=True, default="ar")
    visitor_sla_hours = Column(Integer, nullable=True, default=48)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Church {self.name}>"
