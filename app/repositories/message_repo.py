"""Message repository: append-only log with forward-only status updates."""

from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.message import DELETED_PLACEHOLDER, Message, MessageStatus


class MessageRepository:
    """Encapsulates message database queries."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        conversation_id: int,
        sender_id: int,
        receiver_id: int,
        type: str,
        content: str,
        metadata: dict[str, object] | None = None,
        created_at: datetime | None = None,
    ) -> Message:
        """Append a message with status ``sent``."""
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            type=type,
            content=content,
            status=MessageStatus.SENT.value,
            **(metadata or {}),
        )
        message.created_at = created_at or datetime.now(UTC)
        message.updated_at = message.created_at
        self._session.add(message)
        await self._session.flush()
        await self._session.refresh(message)
        return message

    async def find_by_id(self, message_id: int, refresh: bool = False) -> Message | None:
        """Find a message by its primary key."""
        stmt = select(Message).where(Message.id == message_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def advance_status(self, message_id: int, target: MessageStatus) -> bool:
        """Move one message forward to ``target``.

        The update is conditioned on the stored status being strictly
        earlier, so it never regresses. Returns True when a row changed.
        """
        result = await self._session.execute(
            update(Message)
            .where(
                Message.id == message_id,
                Message.status.in_([s.value for s in target.predecessors()]),
            )
            .values(status=target.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def advance_received(
        self, conversation_id: int, receiver_id: int, target: MessageStatus
    ) -> list[tuple[int, int]]:
        """Move every earlier-status message received by ``receiver_id`` to ``target``.

        Returns ``(message_id, sender_id)`` pairs of the rows this call
        actually moved. Each candidate gets its own conditional update, so a
        row advanced concurrently by another writer is left out.
        """
        result = await self._session.execute(
            select(Message.id, Message.sender_id)
            .where(
                Message.conversation_id == conversation_id,
                Message.receiver_id == receiver_id,
                Message.status.in_([s.value for s in target.predecessors()]),
            )
            .order_by(Message.id.asc())
        )
        candidates = [(row.id, row.sender_id) for row in result]
        return [
            (message_id, sender_id)
            for message_id, sender_id in candidates
            if await self.advance_status(message_id, target)
        ]

    async def find_page(
        self, conversation_id: int, page: int, limit: int
    ) -> tuple[list[Message], int]:
        """Return one page (newest first) and the total message count."""
        result = await self._session.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        messages = list(result.scalars().all())
        total = await self._session.execute(
            select(func.count(Message.id)).where(
                Message.conversation_id == conversation_id
            )
        )
        return messages, int(total.scalar_one())

    async def soft_delete(self, message: Message, deleted_at: datetime) -> Message:
        """Redact content while keeping id and timestamps."""
        message.is_deleted = True
        message.deleted_at = deleted_at
        message.content = DELETED_PLACEHOLDER
        await self._session.flush()
        await self._session.refresh(message)
        return message
