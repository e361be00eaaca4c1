"""Conversation repository: participant pairs, last-message pointer, unread counters."""

from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.conversation import (
    Conversation,
    ConversationParticipant,
    make_pair_key,
)
from app.models.message import Message


@dataclass(frozen=True)
class ConversationWithPreview:
    """Immutable result object for conversation list queries."""

    conversation: Conversation
    unread_count: int
    last_message: Message | None


class ConversationRepository:
    """Encapsulates conversation and participant database queries."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_id(
        self, conversation_id: int, refresh: bool = False
    ) -> Conversation | None:
        """Find a conversation (participants eagerly loaded)."""
        stmt = select(Conversation).where(Conversation.id == conversation_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_pair(self, user_a: int, user_b: int) -> Conversation | None:
        """Find the conversation of an unordered user pair."""
        result = await self._session.execute(
            select(Conversation).where(
                Conversation.pair_key == make_pair_key(user_a, user_b)
            )
        )
        return result.scalar_one_or_none()

    async def create(self, user_a: int, user_b: int) -> Conversation:
        """Insert a conversation with both participant rows.

        Raises ``IntegrityError`` on flush when the pair already exists.
        """
        now = datetime.now(UTC)
        conversation = Conversation(
            pair_key=make_pair_key(user_a, user_b),
            created_at=now,
            updated_at=now,
            participants=[
                ConversationParticipant(user_id=user_a, unread_count=0),
                ConversationParticipant(user_id=user_b, unread_count=0),
            ],
        )
        self._session.add(conversation)
        await self._session.flush()
        await self._session.refresh(conversation)
        return conversation

    async def record_message(
        self,
        conversation_id: int,
        message_id: int,
        receiver_id: int,
        sent_at: datetime,
    ) -> None:
        """Point at the new last message and bump the receiver's unread counter."""
        await self._session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(last_message_id=message_id, updated_at=sent_at)
        )
        await self._session.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == receiver_id,
            )
            .values(unread_count=ConversationParticipant.unread_count + 1)
        )

    async def reset_unread(self, conversation_id: int, user_id: int) -> None:
        await self._session.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .values(unread_count=0)
        )

    async def get_unread(self, conversation_id: int, user_id: int) -> int:
        result = await self._session.execute(
            select(ConversationParticipant.unread_count).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
        )
        return result.scalar_one_or_none() or 0

    async def find_for_user(
        self,
        user_id: int,
        limit: int,
        cursor_updated_at: datetime | None = None,
        cursor_id: int | None = None,
    ) -> list[ConversationWithPreview]:
        """Fetch user conversations with keyset pagination (updated_at DESC, id DESC).

        Returns ``limit`` rows. The caller should request ``limit + 1`` to
        detect whether a next page exists.
        """
        stmt = select(Conversation, ConversationParticipant.unread_count).join(
            ConversationParticipant,
            and_(
                ConversationParticipant.conversation_id == Conversation.id,
                ConversationParticipant.user_id == user_id,
            ),
        )

        if cursor_updated_at is not None and cursor_id is not None:
            stmt = stmt.where(
                or_(
                    Conversation.updated_at < cursor_updated_at,
                    and_(
                        Conversation.updated_at == cursor_updated_at,
                        Conversation.id < cursor_id,
                    ),
                )
            )

        stmt = stmt.order_by(
            Conversation.updated_at.desc(),
            Conversation.id.desc(),
        ).limit(limit)

        rows = (await self._session.execute(stmt)).all()

        last_ids = [row[0].last_message_id for row in rows if row[0].last_message_id]
        last_messages: dict[int, Message] = {}
        if last_ids:
            result = await self._session.execute(
                select(Message).where(Message.id.in_(last_ids))
            )
            last_messages = {m.id: m for m in result.scalars().all()}

        return [
            ConversationWithPreview(
                conversation=conversation,
                unread_count=unread_count,
                last_message=last_messages.get(conversation.last_message_id or 0),
            )
            for conversation, unread_count in rows
        ]

    async def delete(self, conversation_id: int) -> None:
        """Hard-delete a conversation together with its messages."""
        await self._session.execute(
            delete(Message).where(Message.conversation_id == conversation_id)
        )
        await self._session.execute(
            delete(ConversationParticipant).where(
                ConversationParticipant.conversation_id == conversation_id
            )
        )
        await self._session.execute(
            delete(Conversation).where(Conversation.id == conversation_id)
        )
