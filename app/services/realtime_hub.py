"""Wiring of the real-time core with an explicit lifecycle."""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.services.connection_registry import ConnectionRegistry
from app.services.conversation_directory import ConversationDirectory
from app.services.message_router import MessageRouter
from app.services.presence_service import PresenceService

logger = structlog.get_logger()


class RealtimeHub:
    """Owns the connection registry and the services that share it.

    One hub per application (or per test). Nothing here is module-global,
    so isolated instances can run side by side.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self.registry = ConnectionRegistry()
        self.directory = ConversationDirectory()
        self.router = MessageRouter(self.registry, session_factory, self.directory)
        self.presence = PresenceService(self.registry, session_factory)

    @classmethod
    def create(cls, session_factory: async_sessionmaker[AsyncSession]) -> "RealtimeHub":
        return cls(session_factory)

    async def shutdown(self) -> None:
        """Close live sockets, clear the registry, flush presence writes."""
        dropped = await self.registry.shutdown()
        for connection in dropped:
            close = getattr(connection.transport, "close", None)
            if close is None:
                continue
            try:
                await close(code=1001)
            except Exception:
                logger.debug("Socket already closed", connection_id=connection.id)
        await self.presence.shutdown()
        logger.info("Realtime hub stopped", dropped=len(dropped))
