"""Tests for the race-safe conversation directory."""

import asyncio

import pytest

from app.core.exceptions import StoreError, ValidationError
from app.models.conversation import Conversation, make_pair_key
from app.repositories.conversation_repo import ConversationRepository
from app.services.conversation_directory import ConversationDirectory, KeyedLocks
from tests.support import create_user, test_session_factory


class TestPairKey:
    def test_order_independent(self) -> None:
        assert make_pair_key(3, 9) == make_pair_key(9, 3) == "3:9"


class TestGetOrCreate:
    """Tests for ConversationDirectory.get_or_create."""

    async def test_creates_once_then_finds(self) -> None:
        a = await create_user("alice")
        b = await create_user("bob")
        directory = ConversationDirectory()

        async with test_session_factory() as session:
            first, created = await directory.get_or_create(session, a.id, b.id)
        async with test_session_factory() as session:
            again, created_again = await directory.get_or_create(session, b.id, a.id)

        assert created is True
        assert created_again is False
        assert again.id == first.id
        assert first.participant_ids == sorted([a.id, b.id])

    async def test_concurrent_callers_share_one_conversation(self) -> None:
        a = await create_user("alice")
        b = await create_user("bob")
        directory = ConversationDirectory()

        async def attempt(x: int, y: int) -> tuple[int, bool]:
            async with test_session_factory() as session:
                conversation, created = await directory.get_or_create(session, x, y)
                return conversation.id, created

        results = await asyncio.gather(
            *(attempt(a.id, b.id) if i % 2 else attempt(b.id, a.id) for i in range(6))
        )

        assert len({conversation_id for conversation_id, _ in results}) == 1
        assert sum(1 for _, created in results if created) == 1

    async def test_lost_insert_returns_existing_row(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        a = await create_user("alice")
        b = await create_user("bob")
        async with test_session_factory() as session:
            winner, _ = await ConversationDirectory().get_or_create(session, a.id, b.id)

        # The first lookup misses, as if another process inserted right after it.
        original = ConversationRepository.find_by_pair
        calls: list[int] = []

        async def late_lookup(
            self: ConversationRepository, user_a: int, user_b: int
        ) -> Conversation | None:
            calls.append(user_a)
            if len(calls) == 1:
                return None
            return await original(self, user_a, user_b)

        monkeypatch.setattr(ConversationRepository, "find_by_pair", late_lookup)
        async with test_session_factory() as session:
            conversation, created = await ConversationDirectory().get_or_create(
                session, b.id, a.id
            )

        assert created is False
        assert conversation.id == winner.id
        assert len(calls) == 2

    async def test_lost_insert_without_winner_is_store_error(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        a = await create_user("alice")
        b = await create_user("bob")
        async with test_session_factory() as session:
            await ConversationDirectory().get_or_create(session, a.id, b.id)

        async def never_found(
            self: ConversationRepository, user_a: int, user_b: int
        ) -> Conversation | None:
            return None

        monkeypatch.setattr(ConversationRepository, "find_by_pair", never_found)
        async with test_session_factory() as session:
            with pytest.raises(StoreError):
                await ConversationDirectory().get_or_create(session, a.id, b.id)

    async def test_self_pair_rejected(self) -> None:
        a = await create_user("alice")
        async with test_session_factory() as session:
            with pytest.raises(ValidationError):
                await ConversationDirectory().get_or_create(session, a.id, a.id)


class TestKeyedLocks:
    async def test_lock_released_after_use(self) -> None:
        locks = KeyedLocks()
        async with locks.hold("1:2"):
            assert len(locks) == 1
        assert len(locks) == 0
