"""
Centralized Test Configuration.
"""

import os

# Must be set before the application is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("PRUNER_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from bus_relay.app.main import app
from bus_relay.app.db.session import Base
from bus_relay.app.core.jwt import create_access_token
import bus_relay.app.core.redis_client as redis_client_module
from bus_relay.app.realtime.hub import RelayHub, get_relay_hub
from bus_relay.app.services.history_pruner import HistoryPruner, get_history_pruner
from bus_relay.app.services.trip_store import TripStore, get_trip_store

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by revocation checks and /health
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
def reset_redis(redis_client_session):
    redis_client_session.store = {}
    yield


@pytest.fixture
async def setup_database():
    """Create tables before the test and drop them after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def trip_store(setup_database):
    """Trip Store bound to the test database."""
    store = TripStore(TestingSessionLocal)
    app.dependency_overrides[get_trip_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_trip_store, None)


@pytest.fixture
def history_pruner(trip_store):
    from datetime import timedelta

    pruner = HistoryPruner(trip_store, grace_period=timedelta(hours=24), interval_seconds=3600)
    app.dependency_overrides[get_history_pruner] = lambda: pruner
    yield pruner
    app.dependency_overrides.pop(get_history_pruner, None)


@pytest.fixture
def relay_hub():
    """Fresh in-memory hub with no store behind it, served by the app."""
    hub = RelayHub(trip_store=None, queue_size=100, reject_inactive_updates=False, require_driver_token=False)
    app.dependency_overrides[get_relay_hub] = lambda: hub
    yield hub
    app.dependency_overrides.pop(get_relay_hub, None)


@pytest.fixture
def stored_hub(trip_store):
    """Hub that records trips and locations in the test database."""
    hub = RelayHub(trip_store=trip_store, queue_size=100, reject_inactive_updates=False, require_driver_token=False)
    app.dependency_overrides[get_relay_hub] = lambda: hub
    yield hub
    app.dependency_overrides.pop(get_relay_hub, None)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session(setup_database):
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def admin_token():
    return create_access_token({"sub": "ops-1", "role": "ADMIN"})


@pytest.fixture
def driver_token():
    return create_access_token({"sub": "D1", "role": "DRIVER"})


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}
