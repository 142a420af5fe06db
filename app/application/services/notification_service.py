"""Notification dispatcher — single entry point for "send one logical notification to one recipient".

Features:
- Channel selection from the recipient's notification preference
- Locale resolution (recipient → church default → Arabic)
- Ledger row written as `queued` before the provider call, then `sent`/`failed`
- Recipient-level idempotency key stored with the ledger row
- Bounded-width batch fan-out that tolerates per-recipient failures
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.clock import utcnow
from app.core.exceptions import NotFoundError, ProviderError, ValidationError
from app.core.phone import normalize_phone
from app.domain.models.church import Church
from app.domain.models.notification_log import NotificationLog
from app.domain.models.profile import Profile
from app.infrastructure.providers.base import OutboundMessage
from app.infrastructure.providers.registry import (
    EXTERNAL_CHANNEL_PRIORITY,
    ProviderRegistry,
    get_provider_registry,
)
from app.infrastructure.repositories.notification_repository import SQLAlchemyNotificationRepository
from app.application.services.templates import (
    RenderedNotification,
    email_subject,
    get_template,
    interpolate,
    resolve_locale,
)

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500


@dataclass
class NotificationRequest:
    church_id: str
    type: str
    title_en: str
    title_ar: str
    body_en: str
    body_ar: str
    profile_id: Optional[str] = None
    visitor_phone: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    data: dict = field(default_factory=dict)
    # False when the caller already guarantees once-only delivery
    dedup: bool = True

    @property
    def recipient_key(self) -> str:
        return self.profile_id or normalize_phone(self.visitor_phone) or self.visitor_phone or ""


@dataclass
class BatchResult:
    sent: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.sent + self.failed + self.skipped

    def merge(self, other: "BatchResult") -> "BatchResult":
        self.sent += other.sent
        self.failed += other.failed
        self.skipped += other.skipped
        return self


def dedup_key_for(request: NotificationRequest, channel: str) -> Optional[str]:
    if not request.dedup or not request.reference_id:
        return None
    return f"{request.type}:{request.reference_id}:{request.recipient_key}:{channel}"


def _contact_for(profile: Profile, channel: str) -> Optional[str]:
    if channel == "in_app":
        return profile.id
    if channel in ("whatsapp", "sms"):
        return profile.phone or None
    if channel == "email":
        return profile.email or None
    return None


def select_external_channel(profile: Profile, providers: ProviderRegistry) -> Optional[str]:
    """External channel for a profile: its preference, or the richest configured one for "all"."""
    pref = profile.notification_pref or "all"
    if pref == "none":
        return None

    candidates = EXTERNAL_CHANNEL_PRIORITY if pref == "all" else (pref,)
    for channel in candidates:
        if providers.is_configured(channel) and _contact_for(profile, channel):
            return channel
    return None


def _render(request: NotificationRequest) -> RenderedNotification:
    data = request.data or {}
    return RenderedNotification(
        title_en=interpolate(request.title_en or request.title_ar, data),
        title_ar=interpolate(request.title_ar, data),
        body_en=interpolate(request.body_en or request.body_ar, data),
        body_ar=interpolate(request.body_ar, data),
    )


async def _deliver(
    ledger: SQLAlchemyNotificationRepository,
    providers: ProviderRegistry,
    request: NotificationRequest,
    rendered: RenderedNotification,
    locale: str,
    channel: str,
    address: str,
) -> Tuple[NotificationLog, bool]:
    dedup_key = dedup_key_for(request, channel)
    entry = NotificationLog(
        church_id=request.church_id,
        profile_id=request.profile_id,
        recipient_phone=normalize_phone(request.visitor_phone) if request.visitor_phone else None,
        channel=channel,
        type=request.type,
        title_en=rendered.title_en,
        title_ar=rendered.title_ar,
        body_en=rendered.body_en,
        body_ar=rendered.body_ar,
        locale=locale,
        payload={k: str(v) for k, v in (request.data or {}).items()},
        reference_id=request.reference_id,
        reference_type=request.reference_type,
        status="queued",
        dedup_key=dedup_key,
    )
    stored = ledger.add_unique(entry)
    if stored is None:
        logger.info(f"Duplicate {request.type} on {channel} for {request.recipient_key} skipped ({dedup_key})")
        return ledger.get_by_dedup_key(dedup_key), False

    provider = providers.get(channel)
    params = {k: str(v) for k, v in (request.data or {}).items()}
    message = OutboundMessage(
        to=address,
        template=get_template(request.type).provider_template,
        locale=locale,
        params=params,
        subject=email_subject(request.type, locale, {**params, "title": rendered.title(locale)}),
        body=rendered.body(locale),
    )

    try:
        if provider is None or not provider.is_configured():
            raise ProviderError(f"{channel} provider not configured", channel=channel)
        result = await provider.send(message)
    except ProviderError as e:
        stored.status = "failed"
        stored.error = e.message[:MAX_ERROR_LENGTH]
        stored.dedup_key = None  # release the key so a later attempt may retry
        logger.warning(f"{channel} send failed for {request.recipient_key}: {e.message}")
    except Exception as e:
        stored.status = "failed"
        stored.error = str(e)[:MAX_ERROR_LENGTH]
        stored.dedup_key = None
        logger.exception(f"Unexpected {channel} provider error for {request.recipient_key}")
    else:
        stored.status = "sent"
        stored.external_message_id = result.external_message_id
        stored.sent_at = utcnow()

    ledger.save(stored)
    return stored, True


async def dispatch(
    db: Session,
    request: NotificationRequest,
    providers: Optional[ProviderRegistry] = None,
) -> Tuple[NotificationLog, bool]:
    """Send to one recipient. Returns (primary ledger entry, whether it was newly created)."""
    if bool(request.profile_id) == bool(request.visitor_phone):
        raise ValidationError("Exactly one of profile_id or visitor_phone is required")

    providers = providers or get_provider_registry()
    ledger = SQLAlchemyNotificationRepository(db)
    church = db.get(Church, request.church_id)
    church_language = church.primary_language if church else None

    if request.profile_id:
        profile = db.get(Profile, request.profile_id)
        if profile is None:
            raise NotFoundError("Profile not found", details={"profile_id": request.profile_id})
        locale = resolve_locale(profile.preferred_language, church_language)
        channels: List[Tuple[str, str]] = [("in_app", profile.id)]
        external = select_external_channel(profile, providers)
        if external:
            channels.append((external, _contact_for(profile, external)))
    else:
        locale = resolve_locale(None, church_language)
        channels = [("whatsapp", request.visitor_phone)]

    rendered = _render(request)
    primary: Optional[Tuple[NotificationLog, bool]] = None
    for channel, address in channels:
        primary = await _deliver(ledger, providers, request, rendered, locale, channel, address)
    return primary


async def send_notification(
    db: Session,
    request: NotificationRequest,
    providers: Optional[ProviderRegistry] = None,
) -> NotificationLog:
    """Send one notification; provider failures are recorded on the returned entry, not raised."""
    entry, _ = await dispatch(db, request, providers)
    return entry


async def dispatch_batch(
    db: Session,
    requests: Sequence[NotificationRequest],
    width: Optional[int] = None,
    providers: Optional[ProviderRegistry] = None,
) -> BatchResult:
    """Fan out in chunks of `width` concurrent sends; one failure never aborts the batch."""
    width = max(1, width or settings.DISPATCH_BATCH_SIZE)
    result = BatchResult()

    for start in range(0, len(requests), width):
        chunk = requests[start:start + width]
        outcomes = await asyncio.gather(
            *(dispatch(db, r, providers) for r in chunk),
            return_exceptions=True,
        )
        for request, outcome in zip(chunk, outcomes):
            if isinstance(outcome, BaseException):
                result.failed += 1
                logger.error(f"Dispatch of {request.type} to {request.recipient_key} raised: {outcome!r}")
                continue
            entry, created = outcome
            if not created:
                result.skipped += 1
            elif entry.status == "failed":
                result.failed += 1
            else:
                result.sent += 1

    return result
