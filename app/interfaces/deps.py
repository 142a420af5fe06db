"""
API Dependencies.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from app.domain.repositories.notification_repository import NotificationRepository
from app.infrastructure.database import get_db
from app.infrastructure.providers.registry import ProviderRegistry, get_provider_registry
from app.infrastructure.repositories.notification_repository import SQLAlchemyNotificationRepository


def get_notification_repository(db: Session = Depends(get_db)) -> NotificationRepository:
    """Get notification ledger instance."""
    return SQLAlchemyNotificationRepository(db)


def get_providers() -> ProviderRegistry:
    """Channel providers; overridden in tests."""
    return get_provider_registry()
