"""
Pytest fixtures for test database, client, users, events and authentication.

Each test gets its own SQLite database file, so the per-event write lock is
real: concurrent sessions in one test block on each other the way concurrent
transactions do on PostgreSQL.
"""

import os

os.environ["REDIS_ENABLED"] = "false"
os.environ["NOTIFICATION_SINKS"] = "log"

from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from eventbooking.main import app
from eventbooking.db.base import Base
from eventbooking.db.session import get_db
from eventbooking.core.security import create_access_token
from eventbooking.models import User, Event, EventStatus
from eventbooking.services.notification_service import NotificationSink, configure_notification_sinks


class RecordingSink(NotificationSink):
    """Keeps every delivered signal for assertions."""

    def __init__(self):
        self.signals = []

    async def deliver(self, signal):
        self.signals.append(signal)

    def kinds(self) -> list[str]:
        return [s.kind.value for s in self.signals]


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def notifications():
    """Route notifications to an in-memory sink for the duration of a test."""
    sink = RecordingSink()
    configure_notification_sinks([sink])
    yield sink
    configure_notification_sinks(None)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make_user(subject: str, loyalty_points: int = 0, email: str = "") -> User:
        user = User(
            external_subject=subject,
            email=email or f"{subject}@example.com",
            name=subject,
            loyalty_points=loyalty_points,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_event(db_session: AsyncSession):
    async def _make_event(
        organizer: User,
        capacity: int = 100,
        price: Decimal = Decimal("49.99"),
        days_ahead: int = 30,
        status: str = EventStatus.PUBLISHED,
        title: str = "Test Concert",
    ) -> Event:
        start = datetime.now(timezone.utc) + timedelta(days=days_ahead)
        event = Event(
            title=title,
            description="A test event",
            location="Test Venue",
            start_date=start,
            end_date=start + timedelta(hours=3),
            capacity=capacity,
            price=price,
            status=status,
            organizer_id=organizer.id,
        )
        db_session.add(event)
        await db_session.commit()
        await db_session.refresh(event)
        return event

    return _make_event


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": user.external_subject, "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_user(make_user) -> User:
    return await make_user("user-1", email="test@example.com")


@pytest_asyncio.fixture
async def other_user(make_user) -> User:
    return await make_user("user-2", email="other@example.com")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return headers_for(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest_asyncio.fixture
async def test_event(make_event, test_user: User) -> Event:
    """Published event 30 days out, 100 seats at 49.99."""
    return await make_event(test_user)


@pytest_asyncio.fixture
async def small_event(make_event, test_user: User) -> Event:
    """Single-seat event priced at 100."""
    return await make_event(test_user, capacity=1, price=Decimal("100.00"), title="Small Room")


@pytest.fixture
def user_headers():
    """Build auth headers for any user created in a test."""
    return headers_for
