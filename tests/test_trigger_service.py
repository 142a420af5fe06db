import asyncio
from datetime import timedelta

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.domain.models.notification_log import NotificationLog
from app.domain.models.visitor import Visitor
from app.application.services.trigger_service import (
    claim_escalation,
    notify_gathering_reminder,
    notify_visitor_assigned,
    notify_welcome_visitor,
    run_event_reminders,
    run_gathering_reminders,
    run_visitor_sla_escalation,
)

from conftest import NOW


def ledger(db, type):
    return db.query(NotificationLog).filter(NotificationLog.type == type).all()


@pytest.mark.asyncio
class TestEventReminders:
    async def test_reminds_confirmed_registrants_once(self, db, factory, providers):
        church = factory.church()
        event = factory.event(church, NOW + timedelta(hours=3), title_ar="خلوة الربيع", location="Camp")
        first, second = factory.profile(church), factory.profile(church)
        factory.registration(event, first)
        factory.registration(event, second)
        factory.registration(event, factory.profile(church), status="cancelled")
        factory.registration(event, None)

        result = await run_event_reminders(db, now=NOW, providers=providers.registry)
        again = await run_event_reminders(db, now=NOW, providers=providers.registry)

        assert result == {"sent": 2, "total": 1}
        assert again == {"sent": 0, "total": 1}
        assert len(providers.whatsapp.sent) == 2
        message = providers.whatsapp.sent[0]
        assert message.template == "event_reminder"
        assert message.params["eventName"] == "خلوة الربيع"
        assert message.params["location"] == "Camp"

    async def test_ignores_events_outside_window_or_unpublished(self, db, factory, providers):
        church = factory.church()
        profile = factory.profile(church)
        for starts_at, status in (
            (NOW + timedelta(hours=30), "published"),
            (NOW - timedelta(hours=1), "published"),
            (NOW + timedelta(hours=2), "draft"),
        ):
            factory.registration(factory.event(church, starts_at, status=status), profile)

        result = await run_event_reminders(db, now=NOW, providers=providers.registry)

        assert result == {"sent": 0, "total": 0}
        assert providers.external_sends == 0

    async def test_in_app_delivery_marks_event_as_reminded(self, db, factory, providers):
        church = factory.church()
        profile = factory.profile(church, notification_pref="whatsapp")
        factory.registration(factory.event(church, NOW + timedelta(hours=3)), profile)

        providers.whatsapp.fail = True
        # in-app still succeeds, which marks the occasion as reminded
        first = await run_event_reminders(db, now=NOW, providers=providers.registry)
        providers.whatsapp.fail = False
        second = await run_event_reminders(db, now=NOW, providers=providers.registry)

        assert first["sent"] == 0
        assert second["sent"] == 0
        assert {e.channel for e in ledger(db, "event_reminder")} == {"in_app", "whatsapp"}


@pytest.mark.asyncio
class TestGatheringReminders:
    async def test_reminds_active_members_once(self, db, factory, providers):
        church = factory.church()
        group = factory.group(church, name="Tuesday Group")
        factory.member(group, factory.profile(church))
        factory.member(group, factory.profile(church))
        factory.member(group, factory.profile(church), is_active=False)
        factory.gathering(group, NOW + timedelta(hours=5), status="scheduled")

        result = await run_gathering_reminders(db, now=NOW, providers=providers.registry)
        again = await run_gathering_reminders(db, now=NOW, providers=providers.registry)

        assert result == {"sent": 2, "total": 1}
        assert again == {"sent": 0, "total": 1}
        assert providers.whatsapp.sent[0].params["groupName"] == "Tuesday Group"

    async def test_completed_gatherings_are_not_reminded(self, db, factory, providers):
        church = factory.church()
        group = factory.group(church)
        factory.member(group, factory.profile(church))
        factory.gathering(group, NOW + timedelta(hours=5), status="completed")

        result = await run_gathering_reminders(db, now=NOW, providers=providers.registry)
        assert result == {"sent": 0, "total": 0}

    async def test_notify_unknown_gathering(self, db, providers):
        with pytest.raises(NotFoundError):
            await notify_gathering_reminder(db, "missing", providers.registry)


@pytest.mark.asyncio
class TestVisitorSlaEscalation:
    async def test_escalates_overdue_visitor_exactly_once(self, db, factory, providers):
        church = factory.church(visitor_sla_hours=48)
        admin = factory.profile(church, role="super_admin")
        leader = factory.profile(church, role="group_leader")
        overdue = factory.visitor(church, visited_at=NOW - timedelta(hours=50), status="assigned", assigned_to=leader.id)
        factory.visitor(church, visited_at=NOW - timedelta(hours=10))
        factory.visitor(church, visited_at=NOW - timedelta(hours=90), status="contacted")

        result = await run_visitor_sla_escalation(db, now=NOW, providers=providers.registry)
        again = await run_visitor_sla_escalation(db, now=NOW, providers=providers.registry)

        assert result == {"escalated": 1}
        assert again == {"escalated": 0}
        db.refresh(overdue)
        assert overdue.escalated_at is not None
        recipients = {e.profile_id for e in ledger(db, "visitor_sla_escalation")}
        assert recipients == {admin.id, leader.id}
        assert providers.whatsapp.sent[0].params["slaHours"] == "48"

    async def test_uses_church_sla_hours(self, db, factory, providers):
        church = factory.church(visitor_sla_hours=12)
        factory.profile(church, role="super_admin")
        factory.visitor(church, visited_at=NOW - timedelta(hours=13))

        result = await run_visitor_sla_escalation(db, now=NOW, providers=providers.registry)
        assert result == {"escalated": 1}

    async def test_inactive_church_is_skipped(self, db, factory, providers):
        church = factory.church(is_active=False)
        factory.visitor(church, visited_at=NOW - timedelta(hours=100))

        result = await run_visitor_sla_escalation(db, now=NOW, providers=providers.registry)
        assert result == {"escalated": 0}

    async def test_failed_notification_keeps_the_marker(self, db, factory, providers):
        providers.whatsapp.fail = True
        church = factory.church()
        factory.profile(church, role="super_admin", notification_pref="whatsapp")
        visitor = factory.visitor(church, visited_at=NOW - timedelta(hours=72))

        result = await run_visitor_sla_escalation(db, now=NOW, providers=providers.registry)

        assert result == {"escalated": 1}
        db.refresh(visitor)
        assert visitor.escalated_at is not None

    async def test_concurrent_scans_escalate_once(self, db, factory, providers):
        church = factory.church()
        admin = factory.profile(church, role="super_admin", notification_pref="none")
        factory.visitor(church, visited_at=NOW - timedelta(hours=72))

        results = await asyncio.gather(
            run_visitor_sla_escalation(db, now=NOW, providers=providers.registry),
            run_visitor_sla_escalation(db, now=NOW, providers=providers.registry),
        )

        assert sorted(r["escalated"] for r in results) == [0, 1]
        alerts = ledger(db, "visitor_sla_escalation")
        assert [(e.profile_id, e.channel) for e in alerts] == [(admin.id, "in_app")]


def test_escalation_claim_is_won_once(db, factory):
    visitor = factory.visitor(factory.church(), visited_at=NOW - timedelta(hours=72))

    assert claim_escalation(db, visitor.id, NOW) is True
    assert claim_escalation(db, visitor.id, NOW) is False
    assert db.get(Visitor, visitor.id).escalated_at is not None


@pytest.mark.asyncio
class TestVisitorLifecycle:
    async def test_welcome_goes_to_visitor_phone(self, db, factory, providers):
        church = factory.church(name="Grace Church", name_ar="كنيسة النعمة")
        visitor = factory.visitor(church, phone="+962 79 555 0009")

        entry = await notify_welcome_visitor(db, visitor.id, providers.registry)

        assert entry.channel == "whatsapp"
        assert entry.status == "sent"
        assert entry.recipient_phone == "962795550009"
        assert providers.whatsapp.sent[0].template == "visitor_welcome"
        assert providers.whatsapp.sent[0].params["churchName"] == "كنيسة النعمة"

    async def test_welcome_without_phone_is_skipped(self, db, factory, providers):
        visitor = factory.visitor(factory.church(), phone=None)
        assert await notify_welcome_visitor(db, visitor.id, providers.registry) is None
        assert providers.external_sends == 0

    async def test_welcome_unknown_visitor(self, db, providers):
        with pytest.raises(NotFoundError):
            await notify_welcome_visitor(db, "missing", providers.registry)

    async def test_assigned_notifies_the_leader(self, db, factory, providers):
        church = factory.church(visitor_sla_hours=24)
        leader = factory.profile(church, role="group_leader", notification_pref="none")
        visitor = factory.visitor(church, status="assigned", assigned_to=leader.id)

        entry = await notify_visitor_assigned(db, visitor.id, providers=providers.registry)

        assert entry.profile_id == leader.id
        assert entry.channel == "in_app"
        assert visitor.full_name in entry.body_en
        assert "24" in entry.body_en

    async def test_assigned_without_leader(self, db, factory, providers):
        visitor = factory.visitor(factory.church())
        with pytest.raises(ValidationError):
            await notify_visitor_assigned(db, visitor.id, providers=providers.registry)
