"""Presence, typing and chat-request fan-out over the connection registry."""

import asyncio
from collections.abc import Coroutine
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.repositories.user_repo import UserRepository
from app.schemas import event_schema as ev
from app.services.connection_registry import (
    Connection,
    ConnectionRegistry,
    push_to_all,
)
from app.services.conversation_directory import KeyedLocks

logger = structlog.get_logger()


class PresenceService:
    """Broadcaster; who is online is always read from the registry.

    Presence is global: every other connected user hears about online and
    offline transitions. Typing and request notifications go to the named
    recipient only and are dropped when that user is offline.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._registry = registry
        self._session_factory = session_factory
        self._background: set[asyncio.Task[None]] = set()
        self._user_locks = KeyedLocks()

    # --- Connect / disconnect ---

    async def connect(self, connection: Connection) -> bool:
        """Register a connection and announce the user if newly online."""
        came_online = await self._registry.register(connection)
        if not came_online:
            return False

        await push_to_all(
            self._registry.all_sessions(exclude_user_id=connection.user_id),
            ev.USER_ONLINE,
            ev.PresencePayload(user_id=connection.user_id, online=True),
        )
        await self._persist_presence(connection.user_id, is_online=True)
        logger.info("User online", user_id=connection.user_id)
        return True

    async def disconnect(self, connection: Connection) -> datetime | None:
        """Unregister a connection and announce the user if now offline.

        The registry removal happens first and synchronously with respect
        to this connection; the durable last-seen write runs in the
        background.
        """
        last_seen = await self._registry.unregister(connection)
        if last_seen is None:
            return None

        self._spawn(
            self._persist_presence(connection.user_id, is_online=False, last_seen=last_seen)
        )
        await push_to_all(
            self._registry.all_sessions(exclude_user_id=connection.user_id),
            ev.USER_OFFLINE,
            ev.PresencePayload(
                user_id=connection.user_id, online=False, last_seen=last_seen
            ),
        )
        logger.info("User offline", user_id=connection.user_id)
        return last_seen

    # --- Targeted fan-out ---

    async def push_to_user(
        self, user_id: int, event: str, payload: ev.CamelModel | dict[str, Any]
    ) -> int:
        """Push to every live connection of one user; 0 if offline."""
        return await push_to_all(self._registry.sessions_for(user_id), event, payload)

    async def typing(
        self,
        from_user_id: int,
        to_user_id: int,
        conversation_id: int | None,
        is_typing: bool,
    ) -> int:
        return await self.push_to_user(
            to_user_id,
            ev.USER_TYPING,
            ev.UserTypingPayload(
                user_id=from_user_id,
                conversation_id=conversation_id,
                is_typing=is_typing,
            ),
        )

    async def relay_request_sent(
        self, from_user_id: int, receiver_id: int, request: dict[str, Any]
    ) -> int:
        """Relay an already-committed chat request to its receiver."""
        delivered = await self.push_to_user(
            receiver_id, ev.REQUEST_RECEIVED, ev.RequestReceivedPayload(request=request)
        )
        logger.debug(
            "Chat request relayed",
            from_user_id=from_user_id,
            receiver_id=receiver_id,
            delivered=delivered,
        )
        return delivered

    async def relay_request_accepted(
        self, accepted_by: int, sender_id: int, conversation: dict[str, Any]
    ) -> int:
        """Tell the original requester that their request was accepted."""
        return await self.push_to_user(
            sender_id,
            ev.REQUEST_ACCEPTED_NOTIFICATION,
            ev.RequestAcceptedNotificationPayload(
                conversation=conversation, accepted_by=accepted_by
            ),
        )

    # --- Lifecycle ---

    async def shutdown(self) -> None:
        """Wait for pending presence writes."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _persist_presence(
        self, user_id: int, is_online: bool, last_seen: datetime | None = None
    ) -> None:
        """Write the presence flag unless the registry has moved on.

        Writes for one user are serialized and each re-checks the registry
        under the lock, so the stored flag ends up matching the live state
        whichever order connect and disconnect writes run in.
        """
        async with self._user_locks.hold(user_id):
            if self._registry.is_online(user_id) != is_online:
                logger.debug(
                    "Stale presence write skipped", user_id=user_id, is_online=is_online
                )
                return
            await self._write_presence(user_id, is_online, last_seen)

    async def _write_presence(
        self, user_id: int, is_online: bool, last_seen: datetime | None
    ) -> None:
        try:
            async with self._session_factory() as session:
                await UserRepository(session).set_presence(
                    user_id, is_online=is_online, last_seen=last_seen
                )
                await session.commit()
        except Exception:
            logger.exception(
                "Failed to persist presence", user_id=user_id, is_online=is_online
            )
