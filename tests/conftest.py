"""
Pytest configuration and shared fixtures for Order Desk tests.

This module provides:
- A throwaway SQLite database (set up before the app modules are imported)
- Fresh tables for every database test
- Session store / event hub fixtures with a controllable clock
- Fake stream connections that record what the hub sends them
"""

import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="orderdesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["DATA_DIRECTORY"] = os.path.join(_TEST_DIR, "data")
os.environ["EXPORT_ENABLED"] = "false"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin123"

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import func, select

from orderdesk.database import Base, async_session_maker, engine, seed_admin
from orderdesk.services.events import EventHub, get_event_hub
from orderdesk.services.orders import OrderRepository
from orderdesk.services.sessions import SessionStore, get_session_store

pytest_plugins = ('pytest_asyncio',)

TTL_SECONDS = 12 * 3600


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdmin:
    def __init__(self, id: int = 1, username: str = "admin"):
        self.id = id
        self.username = username


class FakeConnection:
    """Stands in for a StreamConnection; records events instead of queueing."""

    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail
        self.closed = False

    async def send(self, event, payload):
        if self.fail:
            raise ConnectionResetError("broken pipe")
        self.events.append((event, payload))

    def close(self):
        self.closed = True

    @property
    def names(self):
        return [name for name, _ in self.events]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(ttl_seconds=TTL_SECONDS, clock=clock)


@pytest.fixture
def hub(store):
    hub = EventHub(store)
    yield hub
    hub.shutdown()


@pytest.fixture
def make_admin():
    return FakeAdmin


@pytest.fixture
def admin():
    return FakeAdmin()


@pytest.fixture
def make_connection():
    def factory(fail: bool = False) -> FakeConnection:
        return FakeConnection(fail=fail)
    return factory


# =============================================================================
# DATABASE
# =============================================================================

@pytest_asyncio.fixture
async def db():
    """Empty tables for one test."""
    from orderdesk import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield async_session_maker
    await engine.dispose()


@pytest_asyncio.fixture
async def repository(db, hub):
    return OrderRepository(db, hub)


@pytest.fixture
def count_rows(db):
    async def counter(model) -> int:
        async with db() as session:
            return await session.scalar(select(func.count()).select_from(model))
    return counter


# =============================================================================
# HTTP API
# =============================================================================

@pytest_asyncio.fixture
async def client(db):
    """HTTP client bound to the app, with the default admin seeded."""
    from orderdesk.main import app

    await seed_admin("admin", "admin123")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    get_event_hub().shutdown()
    get_session_store().clear()


@pytest_asyncio.fixture
async def auth_headers(client):
    response = await client.post(
        "/api/admin/login",
        json={"username": "admin", "password": "admin123"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
