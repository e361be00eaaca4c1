"""Message history, read receipts and deletion over HTTP."""

import math
from datetime import UTC, datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AuthorizationError, MessageNotFoundError
from app.repositories.message_repo import MessageRepository
from app.schemas.message_schema import (
    MarkReadResponse,
    MessagePageResponse,
    MessageResponse,
    Pagination,
)
from app.services.message_router import MessageRouter

logger = structlog.get_logger()


class MessageService:
    """HTTP-side message operations.

    Status changes go through the router so that senders connected over
    the websocket see them.
    """

    def __init__(
        self,
        message_repo: MessageRepository,
        router: MessageRouter,
        session: AsyncSession,
        user_id: int,
    ) -> None:
        self._message_repo = message_repo
        self._router = router
        self._session = session
        self._user_id = user_id

    async def get_history(
        self, conversation_id: int, page: int = 1, limit: int | None = None
    ) -> MessagePageResponse:
        """One page of history, newest page first, oldest-first within it.

        Fetching history marks everything the caller received in ``sent``
        state as delivered.
        """
        limit = min(
            limit or settings.chat.history_page_size,
            settings.chat.history_max_page_size,
        )
        # Also checks that the caller participates in the conversation.
        await self._router.deliver_pending(self._user_id, conversation_id)

        messages, total = await self._message_repo.find_page(
            conversation_id, page, limit
        )
        total_pages = math.ceil(total / limit) if total else 0
        return MessagePageResponse(
            messages=[MessageResponse.model_validate(m) for m in reversed(messages)],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_messages=total,
                has_more=page < total_pages,
            ),
        )

    async def mark_conversation_read(self, conversation_id: int) -> MarkReadResponse:
        updated = await self._router.mark_conversation_read(
            self._user_id, conversation_id
        )
        return MarkReadResponse(updated_count=updated)

    async def delete_message(self, message_id: int) -> MessageResponse:
        """Soft delete: content is redacted, the row stays in history."""
        message = await self._message_repo.find_by_id(message_id)
        if message is None:
            raise MessageNotFoundError
        if message.sender_id != self._user_id:
            raise AuthorizationError("Only the sender can delete this message")

        if not message.is_deleted:
            message = await self._message_repo.soft_delete(message, datetime.now(UTC))
            await self._session.commit()
            logger.info("Message deleted", message_id=message_id, user_id=self._user_id)
        return MessageResponse.model_validate(message)
