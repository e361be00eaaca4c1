"""In-memory registry of live websocket connections per user."""

import asyncio
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from app.schemas.event_schema import CamelModel, ServerFrame

logger = structlog.get_logger()


class Transport(Protocol):
    """The part of a websocket the core pushes through."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...


@dataclass(eq=False)
class Connection:
    """One authenticated live transport session.

    Identity is the object itself, so the same user may hold several
    connections (multiple devices or tabs).
    """

    user_id: int
    transport: Transport
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    async def send(self, event: str, payload: CamelModel | dict[str, Any]) -> bool:
        """Push one event; returns False if the transport refused it.

        A failing push never propagates: a half-closed socket must not
        abort the event being handled for someone else.
        """
        data = payload.to_wire() if isinstance(payload, CamelModel) else payload
        frame = ServerFrame(event=event, data=data)
        try:
            await self.transport.send_json(frame.model_dump(mode="json"))
        except Exception:
            logger.warning(
                "Push failed",
                event=event,
                user_id=self.user_id,
                connection_id=self.id,
                exc_info=True,
            )
            return False
        return True


class ConnectionRegistry:
    """Process-local map ``user_id -> {Connection}``.

    The authority for "can this user be pushed to right now". Mutations are
    serialized with an asyncio lock; reads return snapshots so callers can
    await pushes without holding it.
    """

    def __init__(self) -> None:
        self._sessions: dict[int, set[Connection]] = {}
        self._lock = asyncio.Lock()

    async def register(self, connection: Connection) -> bool:
        """Add a connection. Returns True if the user just came online."""
        async with self._lock:
            sessions = self._sessions.setdefault(connection.user_id, set())
            if connection in sessions:
                return False
            sessions.add(connection)
            first = len(sessions) == 1
        logger.info(
            "Connection registered",
            user_id=connection.user_id,
            connection_id=connection.id,
            sessions=len(sessions),
        )
        return first

    async def unregister(self, connection: Connection) -> datetime | None:
        """Remove a connection.

        Returns the last-seen time if this was the user's final
        connection, otherwise None.
        """
        async with self._lock:
            sessions = self._sessions.get(connection.user_id)
            if not sessions or connection not in sessions:
                return None
            sessions.discard(connection)
            if sessions:
                return None
            del self._sessions[connection.user_id]
        logger.info(
            "Connection unregistered",
            user_id=connection.user_id,
            connection_id=connection.id,
        )
        return datetime.now(UTC)

    def sessions_for(self, user_id: int) -> frozenset[Connection]:
        """Live connections of a user; empty for unknown or offline users."""
        return frozenset(self._sessions.get(user_id, ()))

    def all_sessions(self, exclude_user_id: int | None = None) -> list[Connection]:
        """Snapshot of every live connection, optionally skipping one user."""
        return [
            connection
            for user_id, sessions in list(self._sessions.items())
            if user_id != exclude_user_id
            for connection in list(sessions)
        ]

    def is_online(self, user_id: int) -> bool:
        return bool(self._sessions.get(user_id))

    def online_user_ids(self) -> set[int]:
        return set(self._sessions)

    def __len__(self) -> int:
        return sum(len(sessions) for sessions in self._sessions.values())

    async def shutdown(self) -> list[Connection]:
        """Drop every connection; returns what was registered."""
        async with self._lock:
            dropped = [c for sessions in self._sessions.values() for c in sessions]
            self._sessions.clear()
        logger.info("Connection registry cleared", dropped=len(dropped))
        return dropped


async def push_to_all(
    connections: Iterable[Connection],
    event: str,
    payload: CamelModel | dict[str, Any],
) -> int:
    """Push the same event to several connections concurrently.

    Returns the number of successful pushes.
    """
    targets = list(connections)
    if not targets:
        return 0
    results = await asyncio.gather(*(c.send(event, payload) for c in targets))
    return sum(1 for ok in results if ok)
