"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-enough-length-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-app.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from collections.abc import AsyncGenerator  # noqa: E402

import fakeredis.aioredis  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from app.core.database import Base  # noqa: E402
from app.models.chat_request import ChatRequest  # noqa: E402, F401
from app.models.conversation import Conversation  # noqa: E402, F401
from app.models.message import Message  # noqa: E402, F401
from app.models.user import User  # noqa: E402, F401
from app.services.realtime_hub import RealtimeHub  # noqa: E402
from app.services.token_service import TokenService  # noqa: E402
from tests.support import (  # noqa: E402
    make_auth_headers,
    override_get_async_session,
    test_engine,
    test_session_factory,
)


@pytest.fixture(autouse=True)
async def setup_db() -> AsyncGenerator[None, None]:
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    """Minimum bcrypt cost keeps password tests fast."""
    monkeypatch.setattr("app.core.security.BCRYPT_ROUNDS", 4)


# --- Test Redis (fakeredis) ---


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Create a fresh fake Redis client."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture(autouse=True)
def patch_redis(
    fake_redis: fakeredis.aioredis.FakeRedis, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Patch the global redis_client read by middleware and get_redis()."""
    monkeypatch.setattr("app.core.redis.redis_client", fake_redis)


@pytest.fixture
def token_service(fake_redis: fakeredis.aioredis.FakeRedis) -> TokenService:
    """Create a TokenService backed by fake Redis."""
    return TokenService(fake_redis)


# --- Real-time hub ---


@pytest.fixture
async def hub() -> AsyncGenerator[RealtimeHub, None]:
    """An isolated hub on the test database."""
    instance = RealtimeHub.create(test_session_factory)
    yield instance
    await instance.shutdown()


# --- App override & client fixtures ---


def _get_app(hub: RealtimeHub):  # type: ignore[no-untyped-def]
    """Import app lazily and apply overrides."""
    from app.core.database import get_async_session as original_dep
    from app.dependencies import get_realtime_hub
    from app.main import app

    app.dependency_overrides[original_dep] = override_get_async_session
    app.dependency_overrides[get_realtime_hub] = lambda: hub
    return app


@pytest.fixture
def application(hub: RealtimeHub):  # type: ignore[no-untyped-def]
    """The app wired to the test database and hub, for websocket tests."""
    app = _get_app(hub)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(
    fake_redis: fakeredis.aioredis.FakeRedis,
    hub: RealtimeHub,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client for async tests."""
    application = _get_app(hub)
    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    application.dependency_overrides.clear()


@pytest.fixture
async def authed_client(
    fake_redis: fakeredis.aioredis.FakeRedis,
    hub: RealtimeHub,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with auth headers for user id 1."""
    application = _get_app(hub)
    headers = make_auth_headers(fake_redis)
    transport = ASGITransport(app=application)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=headers
    ) as ac:
        yield ac
    application.dependency_overrides.clear()


# --- DB session for tests ---


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a raw async session for repository tests."""
    async with test_session_factory() as session:
        yield session
