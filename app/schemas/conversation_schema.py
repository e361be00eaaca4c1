"""Conversation API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.models.message import MessageStatus, MessageType
from app.schemas.user_schema import UserSummary


class LastMessagePreview(BaseModel):
    """Trimmed view of a conversation's most recent message."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    type: MessageType
    content: str
    sender_id: int
    status: MessageStatus
    created_at: datetime


class ConversationSummary(BaseModel):
    """Single conversation entry in the list response."""

    model_config = ConfigDict(frozen=True)

    id: int
    participant: UserSummary | None = None
    last_message: LastMessagePreview | None = None
    unread_count: int = 0
    updated_at: datetime


class ConversationDetail(BaseModel):
    """Conversation with both participants."""

    model_config = ConfigDict(frozen=True)

    id: int
    participants: list[UserSummary]
    last_message_id: int | None = None
    created_at: datetime
    updated_at: datetime


class ConversationListResponse(BaseModel):
    """Paginated conversation list with cursor metadata."""

    model_config = ConfigDict(frozen=True)

    conversations: list[ConversationSummary]
    next_cursor: str | None = None
    has_next: bool = False
