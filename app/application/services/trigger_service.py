"""Scheduled trigger jobs and one-shot triggers.

Each scan finds the occasions inside its window, drops the ones the ledger
already shows as sent, and fans the rest out through the dispatcher. Jobs are
safe to re-run: the occasion prefilter, the per-recipient dedup key and the
visitor escalation marker all live in the database.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.clock import format_local_time, utcnow
from app.core.exceptions import NotFoundError, ValidationError
from app.core.phone import normalize_phone
from app.domain.models.church import Church
from app.domain.models.event import Event, EventRegistration
from app.domain.models.gathering import Gathering
from app.domain.models.group import Group, GroupMember
from app.domain.models.notification_log import NotificationLog
from app.domain.models.profile import Profile
from app.domain.models.visitor import Visitor, SLA_STATUSES
from app.infrastructure.providers.registry import ProviderRegistry
from app.infrastructure.repositories.notification_repository import SQLAlchemyNotificationRepository
from app.application.services.notification_service import (
    BatchResult,
    NotificationRequest,
    dispatch_batch,
    send_notification,
)
from app.application.services.templates import get_template

settings = get_settings()
logger = structlog.get_logger(__name__)


def build_request(
    type: str,
    church_id: str,
    params: Dict[str, str],
    reference_id: str,
    reference_type: str,
    profile_id: Optional[str] = None,
    visitor_phone: Optional[str] = None,
) -> NotificationRequest:
    template = get_template(type)
    return NotificationRequest(
        church_id=church_id,
        type=type,
        title_en=template.title_en,
        title_ar=template.title_ar,
        body_en=template.body_en,
        body_ar=template.body_ar,
        profile_id=profile_id,
        visitor_phone=visitor_phone,
        reference_id=reference_id,
        reference_type=reference_type,
        data=params,
    )


def _church_timezone(church: Optional[Church]) -> str:
    return (church.timezone if church else None) or settings.TIMEZONE


async def _remind_event(db: Session, event: Event, providers: Optional[ProviderRegistry]) -> BatchResult:
    rows = (
        db.query(EventRegistration.profile_id)
        .filter(
            EventRegistration.event_id == event.id,
            EventRegistration.status == "confirmed",
            EventRegistration.profile_id.isnot(None),
        )
        .distinct()
        .all()
    )
    if not rows:
        return BatchResult()

    church = db.get(Church, event.church_id)
    params = {
        "eventName": event.title_ar or event.title,
        "time": format_local_time(event.starts_at, _church_timezone(church)),
        "location": event.location or "",
    }
    requests = [
        build_request("event_reminder", event.church_id, params, event.id, "event", profile_id=profile_id)
        for (profile_id,) in rows
    ]
    return await dispatch_batch(db, requests, providers=providers)


async def run_event_reminders(
    db: Session,
    now: Optional[datetime] = None,
    providers: Optional[ProviderRegistry] = None,
) -> Dict[str, int]:
    """Remind confirmed registrants of published events starting within the window."""
    now = now or utcnow()
    window_end = now + timedelta(hours=settings.REMINDER_WINDOW_HOURS)

    events = (
        db.query(Event)
        .filter(
            Event.status == "published",
            Event.starts_at >= now,
            Event.starts_at <= window_end,
        )
        .order_by(Event.starts_at.asc())
        .all()
    )
    if not events:
        logger.info("event_reminders_idle")
        return {"sent": 0, "total": 0}

    ledger = SQLAlchemyNotificationRepository(db)
    already = ledger.distinct_reference_ids("event_reminder", [e.id for e in events])

    result = BatchResult()
    for event in events:
        if event.id in already:
            continue
        try:
            result.merge(await _remind_event(db, event, providers))
        except Exception:
            db.rollback()
            logger.exception("event_reminder_failed", event_id=event.id)

    logger.info(
        "event_reminders_done",
        events=len(events),
        skipped_events=len(already),
        sent=result.sent,
        failed=result.failed,
    )
    return {"sent": result.sent, "total": len(events)}


async def notify_gathering_reminder(
    db: Session,
    gathering_id: str,
    providers: Optional[ProviderRegistry] = None,
) -> BatchResult:
    """Remind every active member of the gathering's group."""
    gathering = db.get(Gathering, gathering_id)
    if gathering is None:
        raise NotFoundError("Gathering not found", details={"gathering_id": gathering_id})

    group = db.get(Group, gathering.group_id)
    if group is None:
        return BatchResult()

    member_ids = [
        profile_id
        for (profile_id,) in db.query(GroupMember.profile_id)
        .filter(GroupMember.group_id == gathering.group_id, GroupMember.is_active.is_(True))
        .all()
    ]
    if not member_ids:
        return BatchResult()

    church = db.get(Church, gathering.church_id)
    params = {
        "groupName": group.display_name,
        "time": format_local_time(gathering.scheduled_at, _church_timezone(church)),
        "location": gathering.location or "",
    }
    requests = [
        build_request("gathering_reminder", gathering.church_id, params, gathering.id, "gathering", profile_id=pid)
        for pid in member_ids
    ]
    return await dispatch_batch(db, requests, providers=providers)


async def run_gathering_reminders(
    db: Session,
    now: Optional[datetime] = None,
    providers: Optional[ProviderRegistry] = None,
) -> Dict[str, int]:
    """Remind group members of scheduled gatherings within the window."""
    now = now or utcnow()
    window_end = now + timedelta(hours=settings.REMINDER_WINDOW_HOURS)

    gatherings = (
        db.query(Gathering)
        .filter(
            Gathering.status == "scheduled",
            Gathering.scheduled_at >= now,
            Gathering.scheduled_at <= window_end,
        )
        .order_by(Gathering.scheduled_at.asc())
        .all()
    )
    if not gatherings:
        logger.info("gathering_reminders_idle")
        return {"sent": 0, "total": 0}

    gathering_ids = [g.id for g in gatherings]
    ledger = SQLAlchemyNotificationRepository(db)
    already = ledger.distinct_reference_ids("gathering_reminder", gathering_ids)

    result = BatchResult()
    for gathering_id in gathering_ids:
        if gathering_id in already:
            continue
        try:
            result.merge(await notify_gathering_reminder(db, gathering_id, providers))
        except Exception:
            db.rollback()
            logger.exception("gathering_reminder_failed", gathering_id=gathering_id)

    logger.info(
        "gathering_reminders_done",
        gatherings=len(gathering_ids),
        skipped_gatherings=len(already),
        sent=result.sent,
        failed=result.failed,
    )
    return {"sent": result.sent, "total": len(gathering_ids)}


def claim_escalation(db: Session, visitor_id: str, now: datetime) -> bool:
    """Set the escalation marker if nobody has. True only for the caller that set it."""
    count = (
        db.query(Visitor)
        .filter(Visitor.id == visitor_id, Visitor.escalated_at.is_(None))
        .update({Visitor.escalated_at: now}, synchronize_session=False)
    )
    db.commit()
    return count == 1


def leadership_recipients(db: Session, church_id: str, assigned_to: Optional[str] = None) -> List[str]:
    admin_ids = [
        pid
        for (pid,) in db.query(Profile.id)
        .filter(Profile.church_id == church_id, Profile.role == "super_admin")
        .order_by(Profile.id)
        .all()
    ]
    if assigned_to and assigned_to not in admin_ids:
        admin_ids.append(assigned_to)
    return admin_ids


async def _escalate_visitor(
    db: Session,
    visitor: Visitor,
    sla_hours: int,
    providers: Optional[ProviderRegistry],
) -> BatchResult:
    recipients = leadership_recipients(db, visitor.church_id, visitor.assigned_to)
    if not recipients:
        logger.warning("visitor_sla_no_recipients", visitor_id=visitor.id, church_id=visitor.church_id)
        return BatchResult()

    params = {"visitorName": visitor.full_name, "slaHours": str(sla_hours)}
    requests = [
        build_request("visitor_sla_escalation", visitor.church_id, params, visitor.id, "visitor", profile_id=pid)
        for pid in recipients
    ]
    return await dispatch_batch(db, requests, providers=providers)


async def run_visitor_sla_escalation(
    db: Session,
    now: Optional[datetime] = None,
    providers: Optional[ProviderRegistry] = None,
) -> Dict[str, int]:
    """Escalate visitors left uncontacted past their church's SLA, once each."""
    now = now or utcnow()
    churches = db.query(Church).filter(Church.is_active.is_(True)).all()
    if not churches:
        logger.info("visitor_sla_idle")
        return {"escalated": 0}

    escalated = 0
    for church in churches:
        sla_hours = church.visitor_sla_hours or settings.DEFAULT_VISITOR_SLA_HOURS
        sla_deadline = now - timedelta(hours=sla_hours)

        overdue = (
            db.query(Visitor.id)
            .filter(
                Visitor.church_id == church.id,
                Visitor.status.in_(SLA_STATUSES),
                Visitor.escalated_at.is_(None),
                Visitor.visited_at < sla_deadline,
            )
            .all()
        )
        for (visitor_id,) in overdue:
            # The marker is committed before notifying; a failed send never un-escalates
            if not claim_escalation(db, visitor_id, now):
                logger.info("visitor_sla_already_claimed", visitor_id=visitor_id)
                continue
            escalated += 1
            try:
                visitor = db.get(Visitor, visitor_id)
                await _escalate_visitor(db, visitor, sla_hours, providers)
            except Exception:
                db.rollback()
                logger.exception("visitor_sla_notify_failed", visitor_id=visitor_id)

    logger.info("visitor_sla_done", churches=len(churches), escalated=escalated)
    return {"escalated": escalated}


async def notify_visitor_assigned(
    db: Session,
    visitor_id: str,
    leader_id: Optional[str] = None,
    providers: Optional[ProviderRegistry] = None,
) -> NotificationLog:
    """Tell the leader a visitor was assigned to them."""
    visitor = db.get(Visitor, visitor_id)
    if visitor is None:
        raise NotFoundError("Visitor not found", details={"visitor_id": visitor_id})

    leader_id = leader_id or visitor.assigned_to
    if not leader_id:
        raise ValidationError("Visitor has no assigned leader", details={"visitor_id": visitor_id})

    church = db.get(Church, visitor.church_id)
    sla_hours = (church.visitor_sla_hours if church else None) or settings.DEFAULT_VISITOR_SLA_HOURS
    params = {"visitorName": visitor.full_name, "slaHours": str(sla_hours)}
    request = build_request(
        "visitor_assigned", visitor.church_id, params, visitor.id, "visitor", profile_id=leader_id
    )
    return await send_notification(db, request, providers)


async def notify_welcome_visitor(
    db: Session,
    visitor_id: str,
    providers: Optional[ProviderRegistry] = None,
) -> Optional[NotificationLog]:
    """WhatsApp welcome to a new visitor. None when the visitor has no usable phone."""
    visitor = db.get(Visitor, visitor_id)
    if visitor is None:
        raise NotFoundError("Visitor not found", details={"visitor_id": visitor_id})

    phone = normalize_phone(visitor.phone)
    if not phone:
        logger.info("visitor_welcome_no_phone", visitor_id=visitor_id)
        return None

    church = db.get(Church, visitor.church_id)
    params = {
        "churchName": (church.name_ar or church.name) if church else "",
        "visitorName": visitor.full_name,
    }
    request = build_request(
        "visitor_welcome", visitor.church_id, params, visitor.id, "visitor", visitor_phone=phone
    )
    return await send_notification(db, request, providers)
