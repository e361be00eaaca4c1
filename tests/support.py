"""Shared test doubles and helpers (imported by conftest and tests alike)."""

import asyncio
import json
from collections.abc import AsyncGenerator
from typing import Any

import fakeredis.aioredis
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.services.connection_registry import Connection
from app.services.token_service import TokenService

# --- Test DB (SQLite in-memory) ---

test_engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)

# Not a valid bcrypt hash: logins against it always fail.
UNUSABLE_PASSWORD = "!unusable"


async def override_get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a test database session."""
    async with test_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# --- Token helpers ---


def make_token(
    fake_redis: fakeredis.aioredis.FakeRedis,
    user_id: int = 1,
    email: str = "test@test.com",
    role: str = "user",
) -> str:
    return TokenService(fake_redis).create_access_token(
        user_id=user_id, email=email, role=role
    )


def make_auth_headers(
    fake_redis: fakeredis.aioredis.FakeRedis,
    user_id: int = 1,
    email: str = "test@test.com",
    role: str = "user",
) -> dict[str, str]:
    """Generate Authorization headers with a valid access token."""
    token = make_token(fake_redis, user_id=user_id, email=email, role=role)
    return {"Authorization": f"Bearer {token}"}


# --- Domain helpers ---


async def create_user(
    username: str,
    email: str | None = None,
    hashed_password: str = UNUSABLE_PASSWORD,
) -> User:
    """Insert a user directly, bypassing registration."""
    async with test_session_factory() as session:
        user = await UserRepository(session).create(
            email=email or f"{username}@example.com",
            hashed_password=hashed_password,
            username=username,
        )
        await session.commit()
        await session.refresh(user)
        return user


class FakeTransport:
    """Records pushed frames in place of a websocket."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail
        self.closed_with: int | None = None

    async def send_json(self, data: Any, mode: str = "text") -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        """Payloads of pushed frames, optionally only those named ``name``."""
        return [f["data"] for f in self.sent if name is None or f["event"] == name]

    def names(self) -> list[str]:
        return [f["event"] for f in self.sent]

    def clear(self) -> None:
        self.sent.clear()


def open_connection(user_id: int) -> tuple[Connection, FakeTransport]:
    transport = FakeTransport()
    return Connection(user_id=user_id, transport=transport), transport


# --- In-process websocket client ---


class WebSocketRejected(Exception):
    """The server closed the socket during the handshake."""

    def __init__(self, code: int) -> None:
        super().__init__(f"websocket closed with {code}")
        self.code = code


class WebSocketClient:
    """Drives the ASGI app over a websocket scope on the current event loop.

    The app task shares the loop with the test database and fake Redis,
    which a threaded test client would not.
    """

    def __init__(
        self,
        app: Any,
        path: str,
        token: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._app = app
        self._path = path
        self._query = f"token={token}" if token else ""
        self._headers = [
            (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
        ]
        self._inbound: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._outbound: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> "WebSocketClient":
        scope = {
            "type": "websocket",
            "asgi": {"version": "3.0"},
            "scheme": "ws",
            "path": self._path,
            "raw_path": self._path.encode(),
            "root_path": "",
            "query_string": self._query.encode(),
            "headers": [(b"host", b"test"), *self._headers],
            "server": ("test", 80),
            "client": ("testclient", 50000),
            "subprotocols": [],
        }
        await self._inbound.put({"type": "websocket.connect"})
        self._task = asyncio.create_task(
            self._app(scope, self._inbound.get, self._outbound.put)
        )
        message = await self._next()
        if message["type"] == "websocket.close":
            await self._task
            raise WebSocketRejected(message.get("code", 1000))
        assert message["type"] == "websocket.accept"
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self._inbound.put({"type": "websocket.disconnect", "code": 1000})
        if self._task is not None:
            await asyncio.wait_for(self._task, timeout=5)

    async def _next(self, timeout: float = 5) -> dict[str, Any]:
        return await asyncio.wait_for(self._outbound.get(), timeout=timeout)

    async def send_text(self, text: str) -> None:
        await self._inbound.put({"type": "websocket.receive", "text": text})

    async def send_bytes(self, data: bytes) -> None:
        await self._inbound.put({"type": "websocket.receive", "bytes": data})

    async def send_event(self, event: str, data: dict[str, Any]) -> None:
        await self.send_text(json.dumps({"event": event, "data": data}))

    async def receive_frame(self, timeout: float = 5) -> dict[str, Any]:
        message = await self._next(timeout)
        assert message["type"] == "websocket.send", message
        return json.loads(message["text"])

    async def receive_event(self, name: str, timeout: float = 5) -> dict[str, Any]:
        """Skip frames until one named ``name`` arrives; return its data."""
        while True:
            frame = await self.receive_frame(timeout)
            if frame["event"] == name:
                return frame["data"]
