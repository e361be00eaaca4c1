"""Message routing: persist, count, deliver, and advance message status."""

from datetime import UTC, datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    AuthorizationError,
    ConversationNotFoundError,
    MessageNotFoundError,
    StoreError,
    UserNotFoundError,
    ValidationError,
)
from app.models.conversation import Conversation
from app.models.message import Message, MessageStatus
from app.repositories.conversation_repo import ConversationRepository
from app.repositories.message_repo import MessageRepository
from app.repositories.user_repo import UserRepository
from app.schemas import event_schema as ev
from app.services.connection_registry import (
    Connection,
    ConnectionRegistry,
    push_to_all,
)
from app.services.conversation_directory import ConversationDirectory

logger = structlog.get_logger()


class MessageRouter:
    """Routes direct messages between users and tracks their status.

    Each public call is one unit of work with its own database session.
    Delivery is optimistic: a message becomes ``delivered`` as soon as the
    receiver has at least one live connection, not when the client
    acknowledges it.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory: async_sessionmaker[AsyncSession],
        directory: ConversationDirectory,
    ) -> None:
        self._registry = registry
        self._session_factory = session_factory
        self._directory = directory

    # --- Send ---

    async def send(
        self, sender_id: int, request: ev.SendMessageEvent, origin: Connection | None = None
    ) -> Message:
        """Store a message and push it to the receiver's live connections.

        ``sender_id`` always comes from the authenticated connection. The
        originating connection (if any) receives ``message_sent``; error
        reporting is left to the caller.
        """
        receiver_id = request.receiver_id
        if receiver_id == sender_id:
            raise ValidationError("Cannot send a message to yourself")

        try:
            async with self._session_factory() as session:
                if await UserRepository(session).find_by_id(receiver_id) is None:
                    raise UserNotFoundError

                conversation = await self._resolve_conversation(
                    session, sender_id, receiver_id, request.conversation_id
                )
                message = await self._append(session, conversation, sender_id, request)

                # One snapshot decides both the status and who gets the push.
                targets = self._registry.sessions_for(receiver_id)
                if targets:
                    moved = await MessageRepository(session).advance_status(
                        message.id, MessageStatus.DELIVERED
                    )
                    await session.commit()
                    if moved:
                        message.status = MessageStatus.DELIVERED.value
        except SQLAlchemyError as exc:
            logger.exception("Message persistence failed", sender_id=sender_id)
            raise StoreError("Failed to send message") from exc

        payload = ev.MessagePayload(
            message=ev.WireMessage.model_validate(message),
            conversation_id=message.conversation_id,
        )
        delivered_to = await push_to_all(targets, ev.RECEIVE_MESSAGE, payload)
        if origin is not None:
            await origin.send(ev.MESSAGE_SENT, payload)

        logger.info(
            "Message routed",
            message_id=message.id,
            conversation_id=message.conversation_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            type=message.type,
            status=message.status,
            pushed=delivered_to,
        )
        return message

    async def _resolve_conversation(
        self,
        session: AsyncSession,
        sender_id: int,
        receiver_id: int,
        conversation_id: int | None,
    ) -> Conversation:
        if conversation_id is None:
            conversation, _ = await self._directory.get_or_create(
                session, sender_id, receiver_id
            )
            return conversation

        conversation = await ConversationRepository(session).find_by_id(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError
        if set(conversation.participant_ids) != {sender_id, receiver_id}:
            raise AuthorizationError("Not a participant of this conversation")
        return conversation

    async def _append(
        self,
        session: AsyncSession,
        conversation: Conversation,
        sender_id: int,
        request: ev.SendMessageEvent,
    ) -> Message:
        """Insert the message and update the conversation in one transaction.

        If the insert fails nothing about the conversation changes.
        """
        now = datetime.now(UTC)
        metadata = request.metadata.as_columns() if request.metadata else None
        try:
            message = await MessageRepository(session).create(
                conversation_id=conversation.id,
                sender_id=sender_id,
                receiver_id=request.receiver_id,
                type=request.type.value,
                content=request.body.content,
                metadata=metadata,
                created_at=now,
            )
            await ConversationRepository(session).record_message(
                conversation.id, message.id, request.receiver_id, now
            )
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise
        return message

    # --- Status entry points ---

    async def mark_delivered(self, user_id: int, message_id: int) -> Message:
        """Receiver acknowledges delivery; a no-op once delivered or read."""
        return await self._advance_one(user_id, message_id, MessageStatus.DELIVERED)

    async def mark_read(self, user_id: int, message_id: int) -> Message:
        """Receiver reads one message; a no-op once read."""
        return await self._advance_one(user_id, message_id, MessageStatus.READ)

    async def _advance_one(
        self, user_id: int, message_id: int, target: MessageStatus
    ) -> Message:
        try:
            async with self._session_factory() as session:
                repo = MessageRepository(session)
                message = await repo.find_by_id(message_id)
                if message is None:
                    raise MessageNotFoundError
                if message.receiver_id != user_id:
                    raise AuthorizationError("Only the receiver can update message status")

                moved = await repo.advance_status(message_id, target)
                await session.commit()
                if moved:
                    message = await repo.find_by_id(message_id, refresh=True) or message
        except SQLAlchemyError as exc:
            raise StoreError("Failed to update message status") from exc

        if moved:
            await push_to_all(
                self._registry.sessions_for(message.sender_id),
                ev.MESSAGE_STATUS_UPDATED,
                ev.StatusUpdatedPayload(message_id=message.id, status=target),
            )
            logger.info(
                "Message status advanced",
                message_id=message.id,
                status=target.value,
                by_user_id=user_id,
            )
        return message

    async def mark_conversation_read(self, user_id: int, conversation_id: int) -> int:
        """Read everything the caller received in a conversation.

        Only messages where the caller is the receiver and the status is
        ``sent`` or ``delivered`` change. The caller's unread counter is
        reset to 0 either way. Returns the number of messages marked.
        """
        try:
            async with self._session_factory() as session:
                conversation = await self._load_for_participant(
                    session, user_id, conversation_id
                )
                transitioned = await MessageRepository(session).advance_received(
                    conversation.id, user_id, MessageStatus.READ
                )
                await ConversationRepository(session).reset_unread(
                    conversation.id, user_id
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to mark conversation read") from exc

        sender_ids = {sender_id for _, sender_id in transitioned}
        for sender_id in sender_ids:
            await push_to_all(
                self._registry.sessions_for(sender_id),
                ev.MESSAGES_READ,
                ev.MessagesReadPayload(conversation_id=conversation_id, read_by=user_id),
            )
        logger.info(
            "Conversation read",
            conversation_id=conversation_id,
            user_id=user_id,
            updated=len(transitioned),
        )
        return len(transitioned)

    async def deliver_pending(self, user_id: int, conversation_id: int) -> int:
        """Mark every ``sent`` message the caller received as delivered.

        Used when the caller fetches history; senders get a status push
        per message.
        """
        try:
            async with self._session_factory() as session:
                conversation = await self._load_for_participant(
                    session, user_id, conversation_id
                )
                transitioned = await MessageRepository(session).advance_received(
                    conversation.id, user_id, MessageStatus.DELIVERED
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to mark messages delivered") from exc

        for message_id, sender_id in transitioned:
            await push_to_all(
                self._registry.sessions_for(sender_id),
                ev.MESSAGE_STATUS_UPDATED,
                ev.StatusUpdatedPayload(
                    message_id=message_id, status=MessageStatus.DELIVERED
                ),
            )
        return len(transitioned)

    @staticmethod
    async def _load_for_participant(
        session: AsyncSession, user_id: int, conversation_id: int
    ) -> Conversation:
        conversation = await ConversationRepository(session).find_by_id(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError
        if not conversation.has_participant(user_id):
            raise AuthorizationError("Not authorized to access this conversation")
        return conversation
