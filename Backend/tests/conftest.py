"""
Pytest configuration and fixtures for async database testing.

Every test gets its own SQLite database file (aiosqlite), so tests never
share rows and never need a running Postgres. The FastAPI client overrides
the session, push notifier, mailer and side-effect dispatcher so nothing
leaves the process.
"""
import os

# Must be set before bookflow is imported: core.db builds its engine at import.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RESEND_API_KEY"] = ""

import json

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bookflow.core.config import Settings
from bookflow.core.db import Base
from bookflow.dispatch import SideEffectDispatcher
from bookflow.emailer import BookingMailer
from bookflow.models import Availability, Business, Service
from bookflow.notifications import PushNotifier

PUSH_URL = "https://push.test/send"


@pytest.fixture(scope="function")
async def async_engine(tmp_path):
    """
    Create an async engine on a fresh SQLite file with all tables.

    A file (not :memory:) lets separate sessions see each other's commits.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookflow.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def async_session(session_factory):
    async with session_factory() as session:
        yield session


# ────────────────────────────────────────────────────────────────
# Outbound HTTP fakes
# ────────────────────────────────────────────────────────────────

class PushRecorder:
    """httpx MockTransport handler that records Expo push requests."""

    def __init__(self):
        self.requests: list[list[dict]] = []
        self.tickets = None
        self.status_code = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        messages = json.loads(request.content)
        self.requests.append(messages)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, text="push service unavailable")
        tickets = self.tickets or [{"status": "ok", "id": f"ticket-{i}"} for i in range(len(messages))]
        return httpx.Response(200, json={"data": tickets})

    @property
    def titles(self) -> list[str]:
        return [batch[0]["title"] for batch in self.requests]


class EmailRecorder:
    def __init__(self):
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "email-1"})


@pytest.fixture
def push_recorder():
    return PushRecorder()


@pytest.fixture
def email_recorder():
    return EmailRecorder()


@pytest.fixture
def notifier(session_factory, push_recorder):
    return PushNotifier(session_factory, PUSH_URL, timeout=5, transport=httpx.MockTransport(push_recorder))


@pytest.fixture
def mail_settings():
    return Settings(RESEND_API_KEY="re_test", RESEND_FROM="BookFlow <bookings@bookflow.test>")


@pytest.fixture
def mailer(mail_settings, email_recorder):
    return BookingMailer(mail_settings, transport=httpx.MockTransport(email_recorder))


@pytest.fixture
def dispatcher():
    return SideEffectDispatcher(timeout_seconds=5)


# ────────────────────────────────────────────────────────────────
# Data helpers
# ────────────────────────────────────────────────────────────────

@pytest.fixture
async def business(async_session):
    """A business open Monday 09:00-11:00 with one 30-minute, $45 service."""
    business = Business(name="Bella Salon", slug="bella-salon")
    async_session.add(business)
    await async_session.flush()
    async_session.add(
        Availability(business_id=business.id, day_of_week=1, start_time="09:00", end_time="11:00")
    )
    await async_session.commit()
    await async_session.refresh(business)
    return business


@pytest.fixture
async def service(async_session, business):
    service = Service(business_id=business.id, name="Haircut", duration=30, price=4500)
    async_session.add(service)
    await async_session.commit()
    return service


# ────────────────────────────────────────────────────────────────
# HTTP client
# ────────────────────────────────────────────────────────────────

@pytest.fixture(scope="function")
async def client(async_session, dispatcher, notifier, mailer):
    """
    FastAPI AsyncClient wired to the test database and fake outbound HTTP.
    """
    from bookflow.core.db import get_session
    from bookflow.main import app
    from bookflow.routes import get_dispatcher, get_mailer, get_push_notifier

    async def override_get_session():
        yield async_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_push_notifier] = lambda: notifier
    app.dependency_overrides[get_mailer] = lambda: mailer

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    await dispatcher.drain()
    app.dependency_overrides.clear()
