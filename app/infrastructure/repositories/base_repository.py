"""
SQLAlchemy implementation of the Base Repository.
"""

from typing import Generic, Type, TypeVar

from sqlalchemy.orm import Session

from app.domain.repositories.base import BaseRepository
from app.infrastructure.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class SQLAlchemyRepository(BaseRepository[ModelType], Generic[ModelType]):
    """Generic repository implementation for SQLAlchemy models."""

    def __init__(self, db: Session, model: Type[ModelType]):
        self.db = db
        self.model = model

    def save(self, obj: ModelType) -> ModelType:
        self.db.add(obj)
        self.db.commit()
        return obj
