"""
Centralized Test Configuration.
"""

import time
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.reliability import model_store_circuit_breaker, persistence_circuit_breaker
from backend.app.schemas.telemetry import TelemetryReading
from backend.app.services.runtime import build_container
import backend.app.core.redis_client as redis_client_module

# Register every table on Base.metadata
from backend.app.models import (  # noqa: F401
    alert, dlq, geofence, optimized_route, prediction_model,
    prediction_training_sample, telemetry_reading, trip,
)

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

T0 = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)  # Monday, off-peak


# Mock Redis for reliability in CI/CD
class MockRedis:
    """In-process stand-in for the subset of redis.asyncio the app uses."""

    def __init__(self):
        self.store = {}
        self.expiry = {}
        self.lists = {}
        self.sets = {}
        self.published = []
        self._closed = False

    def _expired(self, key):
        deadline = self.expiry.get(key)
        if deadline is not None and time.monotonic() >= deadline:
            self.store.pop(key, None)
            self.expiry.pop(key, None)
            return True
        return False

    async def ping(self):
        if self._closed:
            return False
        return True

    # Strings

    async def get(self, key):
        if self._closed or self._expired(key):
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        if ex is not None:
            self.expiry[key] = time.monotonic() + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def delete(self, *keys):
        if self._closed:
            return 0
        removed = 0
        for key in keys:
            for container in (self.store, self.lists, self.sets):
                if key in container:
                    del container[key]
                    removed += 1
            self.expiry.pop(key, None)
        return removed

    async def exists(self, key):
        if self._closed:
            return 0
        self._expired(key)
        return 1 if key in self.store or key in self.lists or key in self.sets else 0

    # Lists

    async def rpush(self, key, *values):
        items = self.lists.setdefault(key, [])
        items.extend(values)
        return len(items)

    async def lpush(self, key, *values):
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    async def lmove(self, source, destination, src="LEFT", dest="RIGHT"):
        items = self.lists.get(source)
        if not items:
            return None
        value = items.pop(0) if src == "LEFT" else items.pop()
        target = self.lists.setdefault(destination, [])
        if dest == "LEFT":
            target.insert(0, value)
        else:
            target.append(value)
        return value

    async def lrem(self, key, count, value):
        items = self.lists.get(key, [])
        removed = 0
        # count > 0 removes the first `count` matches from the head
        remaining = []
        for item in items:
            if item == value and (count == 0 or removed < abs(count)):
                removed += 1
                continue
            remaining.append(item)
        self.lists[key] = remaining
        return removed

    async def lrange(self, key, start, end):
        items = self.lists.get(key, [])
        end = len(items) - 1 if end == -1 else end
        return list(items[start:end + 1])

    async def llen(self, key):
        return len(self.lists.get(key, []))

    # Sets

    async def sadd(self, key, *members):
        members_set = self.sets.setdefault(key, set())
        before = len(members_set)
        members_set.update(members)
        return len(members_set) - before

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    # Pub/Sub

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}
            self.expiry = {}
            self.lists = {}
            self.sets = {}
            self.published = []

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

    # Patch the global redis client used by the health check
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()
    persistence_circuit_breaker.reset_state()
    model_store_circuit_breaker.reset_state()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def redis_mock(redis_client_session):
    return redis_client_session


@pytest.fixture
def container(redis_client_session):
    """Fresh service container wired to the test database and mock Redis."""
    services = build_container(redis_client_session, TestingSessionLocal)
    app.state.container = services
    yield services
    app.state.container = None


@pytest.fixture
async def client(container):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    return TestingSessionLocal


def make_reading(vehicle_id="veh-1", minutes=0, lat=41.0, lng=29.0, ignition_on=True,
                 speed=40.0, battery=80.0, **overrides) -> TelemetryReading:
    """Reading `minutes` after T0."""
    data = dict(
        vehicle_id=vehicle_id,
        device_id=f"dev-{vehicle_id}",
        latitude=lat,
        longitude=lng,
        speed=speed,
        ignition_on=ignition_on,
        battery_percent=battery,
        timestamp=T0 + timedelta(minutes=minutes),
    )
    data.update(overrides)
    return TelemetryReading(**data)


@pytest.fixture
def reading_factory():
    return make_reading
