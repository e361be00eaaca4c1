"""Chat request schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.chat_request import ChatRequestStatus
from app.schemas.conversation_schema import ConversationDetail
from app.schemas.user_schema import UserSummary


class SendChatRequest(BaseModel):
    """Ask another user to connect."""

    receiver_id: int = Field(gt=0)
    message: str = Field(default="", max_length=200)


class ChatRequestResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    sender: UserSummary
    receiver: UserSummary
    status: ChatRequestStatus
    message: str
    created_at: datetime
    updated_at: datetime


class ChatRequestListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    requests: list[ChatRequestResponse]
    count: int


class AcceptRequestResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    request: ChatRequestResponse
    conversation: ConversationDetail
