"""Leadership broadcast — one message to every recipient a set of targets resolves to."""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.infrastructure.providers.registry import ProviderRegistry
from app.application.services.audience_service import resolve_audience
from app.application.services.notification_service import NotificationRequest, dispatch_batch

logger = logging.getLogger(__name__)


@dataclass
class BroadcastResult:
    broadcast_id: str
    sent: int
    failed: int
    targets: int

    def to_dict(self) -> dict:
        return {
            "broadcast_id": self.broadcast_id,
            "sent": self.sent,
            "failed": self.failed,
            "targets": self.targets,
        }


async def send_broadcast(
    db: Session,
    church_id: str,
    targets: List,
    title_ar: str,
    body_ar: str,
    title_en: Optional[str] = None,
    body_en: Optional[str] = None,
    providers: Optional[ProviderRegistry] = None,
) -> BroadcastResult:
    """Resolve the audience and send a `general` notification to each recipient.

    Profiles get their usual channels; visitors get the WhatsApp general template.
    Validation happens before anything is sent.
    """
    if not (title_ar or "").strip() or not (body_ar or "").strip():
        raise ValidationError("Arabic title and body are required")
    if not targets:
        raise ValidationError("At least one target is required")

    audience = resolve_audience(db, church_id, targets)
    if audience.total == 0:
        raise ValidationError("No recipients found for the selected targets")

    broadcast_id = str(uuid.uuid4())
    common = dict(
        church_id=church_id,
        type="general",
        title_en=title_en or title_ar,
        title_ar=title_ar,
        body_en=body_en or body_ar,
        body_ar=body_ar,
        reference_id=broadcast_id,
        reference_type="broadcast",
        data={"title": title_ar, "body": body_ar},
    )
    requests = [NotificationRequest(profile_id=pid, **common) for pid in audience.profile_ids]
    requests += [NotificationRequest(visitor_phone=v.phone, **common) for v in audience.visitors]

    result = await dispatch_batch(db, requests, providers=providers)
    logger.info(
        f"Broadcast {broadcast_id} for church {church_id}: "
        f"{result.sent} sent, {result.failed} failed of {audience.total}"
    )
    return BroadcastResult(
        broadcast_id=broadcast_id,
        sent=result.sent,
        failed=result.failed,
        targets=audience.total,
    )
