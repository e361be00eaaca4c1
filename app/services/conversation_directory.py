"""Race-safe lookup-or-create of the conversation for a user pair."""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StoreError, ValidationError
from app.models.conversation import Conversation, make_pair_key
from app.repositories.conversation_repo import ConversationRepository

logger = structlog.get_logger()


class KeyedLocks:
    """One asyncio lock per key, dropped once nobody waits on it."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class ConversationDirectory:
    """Guarantees at most one conversation per unordered participant pair.

    Creation is serialized per pair key in-process, and the unique
    ``pair_key`` column backs that up: a losing insert re-reads the
    winner's row once before giving up with StoreError.
    """

    def __init__(self, locks: KeyedLocks | None = None) -> None:
        self._locks = locks or KeyedLocks()

    async def get_or_create(
        self, session: AsyncSession, user_a: int, user_b: int
    ) -> tuple[Conversation, bool]:
        """Return ``(conversation, created)`` and commit any insert."""
        if user_a == user_b:
            raise ValidationError("A conversation needs two distinct participants")

        repo = ConversationRepository(session)
        key = make_pair_key(user_a, user_b)
        async with self._locks.hold(key):
            existing = await repo.find_by_pair(user_a, user_b)
            if existing is not None:
                return existing, False
            try:
                conversation = await repo.create(user_a, user_b)
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning("Conversation insert lost race", pair_key=key)
                existing = await repo.find_by_pair(user_a, user_b)
                if existing is None:
                    raise StoreError("Could not create conversation") from None
                return existing, False
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StoreError("Could not create conversation") from exc

        logger.info(
            "Conversation created",
            conversation_id=conversation.id,
            participants=[user_a, user_b],
        )
        return conversation, True
