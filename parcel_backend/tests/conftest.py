"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from parcel_backend.app.main import app
from parcel_backend.app.db.session import get_db, Base
from parcel_backend.app.core.token_revocation import get_redis
from parcel_backend.app.core.exceptions import PaymentProviderError
from parcel_backend.app.services.payment_gateway import get_payment_gateway
from parcel_backend.app.models.enums import UserRole
from parcel_backend.tests.factories import (
    ADMIN_EMAIL,
    SENDER_EMAIL,
    RIDER_EMAIL,
    auth_headers,
    create_user,
    create_rider,
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


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        return not self._closed

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


class FakePaymentGateway:
    """Stands in for the card provider; records every intent request."""

    def __init__(self):
        self.calls = []
        self.fail = False

    async def create_intent(self, amount: int, currency: str) -> str:
        self.calls.append((amount, currency))
        if self.fail:
            raise PaymentProviderError("Payment provider temporarily unavailable")
        return f"pi_test_{len(self.calls)}_secret_abc"


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def fake_gateway():
    return FakePaymentGateway()


@pytest.fixture(autouse=True)
def apply_overrides(mock_redis, fake_gateway):
    """Route the app's database, redis and payment provider to test doubles."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway
    yield

    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
async def admin_headers(db_session):
    await create_user(db_session, ADMIN_EMAIL, UserRole.ADMIN)
    return auth_headers(ADMIN_EMAIL)


@pytest.fixture
async def sender_headers(db_session):
    await create_user(db_session, SENDER_EMAIL, UserRole.USER)
    return auth_headers(SENDER_EMAIL)


@pytest.fixture
async def active_rider(db_session):
    """An active rider with a matching RIDER user account."""
    await create_user(db_session, RIDER_EMAIL, UserRole.RIDER)
    return await create_rider(db_session)


@pytest.fixture
async def rider_headers(active_rider):
    return auth_headers(RIDER_EMAIL)
