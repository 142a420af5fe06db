"""Notifications API routes — feed, read state, audience preview, broadcasts and queue status."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.exceptions import NotFoundError
from app.infrastructure.database import get_db
from app.infrastructure.providers.registry import ProviderRegistry
from app.interfaces.api.deps import get_current_profile, require_leadership
from app.interfaces.deps import get_notification_repository, get_providers
from app.domain.models.profile import Profile
from app.domain.repositories.notification_repository import NotificationRepository
from app.domain.schemas.notification import (
    AudienceCountRead,
    AudiencePreviewRequest,
    BroadcastRead,
    BroadcastRequest,
    MarkAllReadResult,
    NotificationFeed,
    NotificationLogRead,
)
from app.application.services.audience_service import count_audience
from app.application.services.broadcast_service import send_broadcast
from app.scheduler.tasks import get_status

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationFeed)
def list_notifications(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    unread: bool = Query(False),
    repo: NotificationRepository = Depends(get_notification_repository),
    profile: Profile = Depends(get_current_profile),
):
    """The caller's own in-app notifications, newest first."""
    offset = (page - 1) * page_size
    feed = repo.list_feed(profile.id, skip=offset, limit=page_size, unread_only=unread)
    total = feed["total"]
    return {
        "items": [NotificationLogRead.model_validate(n) for n in feed["items"]],
        "total": total,
        "unread_count": repo.count_unread(profile.id),
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size,
    }


@router.patch("/read-all", response_model=MarkAllReadResult)
def mark_all_read(
    repo: NotificationRepository = Depends(get_notification_repository),
    profile: Profile = Depends(get_current_profile),
):
    return {"updated": repo.mark_all_read(profile.id, utcnow())}


@router.patch("/{notification_id}", response_model=NotificationLogRead)
def mark_read(
    notification_id: str,
    repo: NotificationRepository = Depends(get_notification_repository),
    profile: Profile = Depends(get_current_profile),
):
    entry = repo.mark_read(notification_id, profile.id, utcnow())
    if entry is None:
        raise NotFoundError("Notification not found", details={"id": notification_id})
    return entry


@router.post("/audience", response_model=AudienceCountRead)
def preview_audience(
    body: AudiencePreviewRequest,
    db: Session = Depends(get_db),
    profile: Profile = Depends(require_leadership),
):
    """Count the recipients a set of targets would reach, without sending."""
    return count_audience(db, profile.church_id, body.targets).to_dict()


@router.post("/send", response_model=BroadcastRead)
async def send(
    body: BroadcastRequest,
    db: Session = Depends(get_db),
    providers: ProviderRegistry = Depends(get_providers),
    profile: Profile = Depends(require_leadership),
):
    """Send a bilingual message to every recipient of the given targets."""
    result = await send_broadcast(
        db,
        profile.church_id,
        body.targets,
        title_ar=body.title_ar,
        body_ar=body.body_ar,
        title_en=body.title_en,
        body_en=body.body_en,
        providers=providers,
    )
    return result.to_dict()


@router.get("/providers")
def provider_status(
    providers: ProviderRegistry = Depends(get_providers),
    profile: Profile = Depends(require_leadership),
):
    """Which channels are configured."""
    return providers.status()


@router.get("/scheduler-status")
def scheduler_status(profile: Profile = Depends(require_leadership)):
    """Background queue state and recently exhausted tasks."""
    return get_status()
