"""
Pytest fixtures for the test database, sessions, client, and authentication.

Each test gets a fresh SQLite file database. The engine opens every
transaction with BEGIN IMMEDIATE, so independent sessions serialize the way
row locks serialize them on PostgreSQL and concurrency tests are meaningful.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import uuid
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.main import app
from event_reservations.core.config import get_settings
from event_reservations.core.security import create_access_token
from event_reservations.db.base import Base
from event_reservations.db.session import build_engine, build_sessionmaker, get_db
from event_reservations.models.event import Event
from event_reservations.services.event_service import get_event
from event_reservations.services.transaction import unit_of_work


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}"


@pytest_asyncio.fixture
async def engine(database_url):
    engine = build_engine(database_url, lock_timeout_ms=5000)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own session on the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def user_a() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def user_b() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def user_c() -> uuid.UUID:
    return uuid.uuid4()


def _bearer(user_id: uuid.UUID, role: str = "customer") -> dict:
    token = create_access_token(data={"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """Build bearer headers for any user id (and optional role)."""
    return _bearer


@pytest.fixture
def auth_headers(user_a) -> dict:
    return _bearer(user_a)


@pytest.fixture
def internal_headers() -> dict:
    return {"X-Internal-Token": get_settings().INTERNAL_API_TOKEN}


@pytest.fixture
def make_event(session_factory):
    """
    Insert an event directly, bypassing create_event's validation so tests
    can also build past or unpublished events.
    """

    async def _make_event(
        capacity: int = 10,
        available_spots: int = None,
        price: str = "25.00",
        is_published: bool = True,
        days_ahead: int = 30,
        slug: str = None,
    ) -> Event:
        async with session_factory() as session:
            async with unit_of_work(session, "seed_event"):
                event = Event(
                    slug=slug or f"event-{uuid.uuid4().hex[:8]}",
                    title="Test Workshop",
                    event_date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
                    price=Decimal(price),
                    capacity=capacity,
                    available_spots=capacity if available_spots is None else available_spots,
                    is_published=is_published,
                )
                session.add(event)
        return event

    return _make_event


@pytest_asyncio.fixture
async def test_event(make_event) -> Event:
    """Published event thirty days out with 10 spots at 25.00."""
    return await make_event(capacity=10, price="25.00")


@pytest.fixture
def spots_left(session_factory):
    """Read available_spots through a fresh session."""

    async def _spots_left(event_id) -> int:
        async with session_factory() as session:
            event = await get_event(session, event_id)
            return event.available_spots

    return _spots_left
