"""Shared fixtures: in-memory database, fake channel providers and row factories."""

import os

# Settings are read once at import time; pin the test configuration first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["WHATSAPP_WEBHOOK_SECRET"] = "test-verify-token"
os.environ["WHATSAPP_APP_SECRET"] = ""
os.environ["WHATSAPP_API_KEY"] = ""
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["TWILIO_AUTH_TOKEN"] = ""
os.environ["TWILIO_FROM_NUMBER"] = ""
os.environ["RESEND_API_KEY"] = ""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.core.exceptions import ProviderError
from app.infrastructure.database import Base, SessionLocal, engine, get_db
from app.infrastructure.providers.base import ChannelProvider, OutboundMessage, ProviderResult
from app.infrastructure.providers.registry import ProviderRegistry
from app.interfaces.deps import get_providers
from app.application.services.auth_service import create_access_token
from app.domain.models.church import Church
from app.domain.models.event import Event, EventRegistration
from app.domain.models.gathering import Attendance, Gathering
from app.domain.models.group import Group, GroupMember, Ministry
from app.domain.models.profile import Profile
from app.domain.models.visitor import Visitor

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeProvider(ChannelProvider):
    """Records every message; fails on demand."""

    def __init__(self, channel: str, configured: bool = True, fail: bool = False):
        self.channel = channel
        self.configured = configured
        self.fail = fail
        self.sent: List[OutboundMessage] = []

    def is_configured(self) -> bool:
        return self.configured

    async def send(self, message: OutboundMessage) -> ProviderResult:
        if self.fail:
            raise ProviderError(f"{self.channel} is down", channel=self.channel, retryable=True)
        self.sent.append(message)
        return ProviderResult(external_message_id=f"{self.channel}-{len(self.sent)}")


class Providers:
    def __init__(self):
        self.whatsapp = FakeProvider("whatsapp")
        self.sms = FakeProvider("sms")
        self.email = FakeProvider("email")
        self.registry = ProviderRegistry([self.whatsapp, self.sms, self.email])

    @property
    def external_sends(self) -> int:
        return len(self.whatsapp.sent) + len(self.sms.sent) + len(self.email.sent)


class Factory:
    """Inserts directory rows with sensible defaults."""

    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def church(self, **kwargs) -> Church:
        kwargs.setdefault("name", "Grace Church")
        kwargs.setdefault("name_ar", "كنيسة النعمة")
        kwargs.setdefault("timezone", "Asia/Amman")
        kwargs.setdefault("primary_language", "ar")
        kwargs.setdefault("visitor_sla_hours", 48)
        return self._save(Church(**kwargs))

    def profile(self, church: Church, **kwargs) -> Profile:
        n = self._next()
        kwargs.setdefault("id", f"profile-{n}")
        kwargs.setdefault("first_name", f"Member{n}")
        kwargs.setdefault("last_name", "Test")
        kwargs.setdefault("phone", f"+96279100{n:04d}")
        kwargs.setdefault("email", f"member{n}@example.com")
        kwargs.setdefault("role", "member")
        kwargs.setdefault("status", "active")
        kwargs.setdefault("notification_pref", "all")
        kwargs.setdefault("onboarding_completed", True)
        return self._save(Profile(church_id=church.id, **kwargs))

    def ministry(self, church: Church, **kwargs) -> Ministry:
        kwargs.setdefault("name", "Youth")
        return self._save(Ministry(church_id=church.id, **kwargs))

    def group(self, church: Church, leader: Optional[Profile] = None, **kwargs) -> Group:
        kwargs.setdefault("name", "Tuesday Group")
        kwargs.setdefault("is_active", True)
        return self._save(Group(church_id=church.id, leader_id=leader.id if leader else None, **kwargs))

    def member(self, group: Group, profile: Profile, **kwargs) -> GroupMember:
        kwargs.setdefault("is_active", True)
        return self._save(GroupMember(group_id=group.id, profile_id=profile.id, church_id=group.church_id, **kwargs))

    def gathering(self, group: Group, scheduled_at: datetime, **kwargs) -> Gathering:
        kwargs.setdefault("status", "completed")
        kwargs.setdefault("location", "Hall A")
        return self._save(Gathering(group_id=group.id, church_id=group.church_id, scheduled_at=scheduled_at, **kwargs))

    def attendance(self, gathering: Gathering, profile: Profile, status: str) -> Attendance:
        return self._save(Attendance(
            gathering_id=gathering.id,
            group_id=gathering.group_id,
            profile_id=profile.id,
            church_id=gathering.church_id,
            status=status,
        ))

    def event(self, church: Church, starts_at: datetime, **kwargs) -> Event:
        kwargs.setdefault("title", "Spring Retreat")
        kwargs.setdefault("status", "published")
        return self._save(Event(church_id=church.id, starts_at=starts_at, **kwargs))

    def registration(self, event: Event, profile: Optional[Profile], **kwargs) -> EventRegistration:
        kwargs.setdefault("status", "confirmed")
        return self._save(EventRegistration(event_id=event.id, profile_id=profile.id if profile else None, **kwargs))

    def visitor(self, church: Church, **kwargs) -> Visitor:
        n = self._next()
        kwargs.setdefault("first_name", f"Visitor{n}")
        kwargs.setdefault("last_name", "Guest")
        kwargs.setdefault("phone", f"+96278200{n:04d}")
        kwargs.setdefault("status", "new")
        kwargs.setdefault("visited_at", NOW)
        return self._save(Visitor(church_id=church.id, **kwargs))


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def factory(db) -> Factory:
    return Factory(db)


@pytest.fixture
def providers() -> Providers:
    return Providers()


@pytest.fixture
def client(db, providers):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_providers] = lambda: providers.registry
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_header(profile: Profile) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': profile.id})}"}


@pytest.fixture
def auth():
    return auth_header


@pytest.fixture
def cron_header() -> dict:
    return {"Authorization": "Bearer test-cron-secret"}
