"""Service layer for the conversation list with cursor-based pagination."""

import base64
import json
from datetime import UTC, datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AppException,
    AuthorizationError,
    ConversationNotFoundError,
)
from app.models.conversation import Conversation
from app.repositories.conversation_repo import ConversationRepository
from app.repositories.user_repo import UserRepository
from app.schemas.auth_schema import MessageResponse
from app.schemas.conversation_schema import (
    ConversationDetail,
    ConversationListResponse,
    ConversationSummary,
    LastMessagePreview,
)
from app.schemas.user_schema import UserSummary

logger = structlog.get_logger()


def encode_cursor(updated_at: datetime, conversation_id: int) -> str:
    """Encode pagination cursor as base64url JSON."""
    payload = {"u": updated_at.isoformat(), "i": conversation_id}
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()


def decode_cursor(cursor: str) -> tuple[datetime, int]:
    """Decode pagination cursor. Raises AppException on invalid input."""
    try:
        raw = base64.urlsafe_b64decode(cursor.encode())
        data = json.loads(raw)
        updated_at = datetime.fromisoformat(data["u"])
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=UTC)
        conversation_id = int(data["i"])
    except (ValueError, KeyError, TypeError) as exc:
        raise AppException(
            message=f"Invalid cursor: {exc}",
            code="INVALID_CURSOR",
            status_code=400,
        ) from exc
    return updated_at, conversation_id


class ConversationService:
    """Conversation list, detail and deletion for the authenticated user."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository,
        session: AsyncSession,
        user_id: int,
    ) -> None:
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._session = session
        self._user_id = user_id

    async def list_conversations(
        self,
        limit: int = 20,
        cursor: str | None = None,
    ) -> ConversationListResponse:
        """Return a page of the user's conversations, most recent first."""
        cursor_updated_at: datetime | None = None
        cursor_id: int | None = None

        if cursor is not None:
            cursor_updated_at, cursor_id = decode_cursor(cursor)

        rows = await self._conversation_repo.find_for_user(
            user_id=self._user_id,
            limit=limit + 1,
            cursor_updated_at=cursor_updated_at,
            cursor_id=cursor_id,
        )

        has_next = len(rows) > limit
        page_rows = rows[:limit]

        next_cursor: str | None = None
        if has_next and page_rows:
            last = page_rows[-1].conversation
            next_cursor = encode_cursor(last.updated_at, last.id)

        other_ids = [
            r.conversation.other_participant_id(self._user_id) for r in page_rows
        ]
        users = await self._user_repo.find_by_ids(i for i in other_ids if i)

        conversations = []
        for row, other_id in zip(page_rows, other_ids, strict=True):
            participant = users.get(other_id) if other_id else None
            conversations.append(
                ConversationSummary(
                    id=row.conversation.id,
                    participant=(
                        UserSummary.model_validate(participant) if participant else None
                    ),
                    last_message=(
                        LastMessagePreview.model_validate(row.last_message)
                        if row.last_message
                        else None
                    ),
                    unread_count=row.unread_count,
                    updated_at=row.conversation.updated_at,
                )
            )

        return ConversationListResponse(
            conversations=conversations,
            next_cursor=next_cursor,
            has_next=has_next,
        )

    async def get_conversation(self, conversation_id: int) -> ConversationDetail:
        conversation = await self._load(conversation_id)
        users = await self._user_repo.find_by_ids(conversation.participant_ids)
        return ConversationDetail(
            id=conversation.id,
            participants=[
                UserSummary.model_validate(users[uid])
                for uid in conversation.participant_ids
                if uid in users
            ],
            last_message_id=conversation.last_message_id,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )

    async def delete_conversation(self, conversation_id: int) -> MessageResponse:
        """Hard-delete the conversation and all of its messages."""
        conversation = await self._load(conversation_id)
        await self._conversation_repo.delete(conversation.id)
        await self._session.commit()
        logger.info(
            "Conversation deleted",
            conversation_id=conversation_id,
            user_id=self._user_id,
        )
        return MessageResponse(message="Conversation deleted successfully")

    async def _load(self, conversation_id: int) -> Conversation:
        conversation = await self._conversation_repo.find_by_id(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError
        if not conversation.has_participant(self._user_id):
            raise AuthorizationError(
                message="Not authorized to access this conversation"
            )
        return conversation
