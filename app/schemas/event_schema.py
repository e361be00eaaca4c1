"""WebSocket event envelopes and payloads.

Every frame in both directions is ``{"event": <name>, "data": {...}}``.
Payload field names are camelCase on the wire.
"""

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from app.core.exceptions import ValidationError
from app.models.message import MessageStatus, MessageType
from app.schemas.message_schema import MessageContent, MessageMetadata

# --- Event names ---

# Inbound
SEND_MESSAGE = "send_message"
TYPING = "typing"
STOP_TYPING = "stop_typing"
MESSAGE_DELIVERED = "message_delivered"
MESSAGE_READ = "message_read"
REQUEST_SENT = "request_sent"
REQUEST_ACCEPTED = "request_accepted"

# Outbound
MESSAGE_SENT = "message_sent"
MESSAGE_ERROR = "message_error"
RECEIVE_MESSAGE = "receive_message"
USER_TYPING = "user_typing"
MESSAGE_STATUS_UPDATED = "message_status_updated"
MESSAGES_READ = "messages_read"
USER_ONLINE = "user_online"
USER_OFFLINE = "user_offline"
REQUEST_RECEIVED = "request_received"
REQUEST_ACCEPTED_NOTIFICATION = "request_accepted_notification"
ERROR = "error"


class CamelModel(BaseModel):
    """Wire model: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Frames ---


class ClientFrame(BaseModel):
    """Client → server."""

    event: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class ServerFrame(BaseModel):
    """Server → client."""

    event: str
    data: dict[str, Any] = Field(default_factory=dict)


# --- Inbound payloads ---


class SendMessageEvent(CamelModel):
    """``send_message``; ``type``/``content``/``metadata`` form the tagged body."""

    receiver_id: int
    conversation_id: int | None = None
    body: MessageContent

    @model_validator(mode="before")
    @classmethod
    def collect_body(cls, data: Any) -> Any:
        if isinstance(data, dict) and "body" not in data:
            data = dict(data)
            body: dict[str, Any] = {
                "type": data.pop("type", None),
                "content": data.pop("content", None),
            }
            metadata = data.pop("metadata", None)
            if metadata is not None:
                body["metadata"] = metadata
            data["body"] = body
        return data

    @property
    def type(self) -> MessageType:
        return MessageType(self.body.type)

    @property
    def metadata(self) -> MessageMetadata | None:
        return self.body.metadata


class TypingEvent(CamelModel):
    receiver_id: int
    conversation_id: int | None = None


class MessageDeliveredEvent(CamelModel):
    message_id: int


class MessageReadEvent(CamelModel):
    """Either a single message or a whole conversation."""

    message_id: int | None = None
    conversation_id: int | None = None

    @model_validator(mode="after")
    def require_target(self) -> "MessageReadEvent":
        if self.message_id is None and self.conversation_id is None:
            raise ValueError("messageId or conversationId is required")
        return self


class RequestSentEvent(CamelModel):
    receiver_id: int
    request: dict[str, Any]


class RequestAcceptedEvent(CamelModel):
    sender_id: int
    conversation: dict[str, Any]


# --- Outbound payloads ---


class WireMetadata(CamelModel):
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    width: int | None = None
    height: int | None = None


class WireMessage(CamelModel):
    """Persisted message as pushed over the socket."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    sender_id: int
    receiver_id: int
    type: MessageType
    content: str
    status: MessageStatus
    metadata: WireMetadata | None = None
    is_deleted: bool = False
    created_at: datetime

    @model_validator(mode="before")
    @classmethod
    def collect_metadata(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return data
        fields = {
            name: getattr(data, name, None)
            for name in ("file_name", "file_size", "mime_type", "width", "height")
        }
        return {
            "id": data.id,
            "conversation_id": data.conversation_id,
            "sender_id": data.sender_id,
            "receiver_id": data.receiver_id,
            "type": data.type,
            "content": data.content,
            "status": data.status,
            "metadata": fields if any(v is not None for v in fields.values()) else None,
            "is_deleted": data.is_deleted,
            "created_at": data.created_at,
        }


class MessagePayload(CamelModel):
    """``message_sent`` and ``receive_message``."""

    message: WireMessage
    conversation_id: int


class MessageErrorPayload(CamelModel):
    error: str
    code: str


class ErrorPayload(CamelModel):
    event: str
    code: str
    error: str


class UserTypingPayload(CamelModel):
    user_id: int
    conversation_id: int | None
    is_typing: bool


class StatusUpdatedPayload(CamelModel):
    message_id: int
    status: MessageStatus


class MessagesReadPayload(CamelModel):
    conversation_id: int
    read_by: int


class PresencePayload(CamelModel):
    user_id: int
    online: bool
    last_seen: datetime | None = None


class RequestReceivedPayload(CamelModel):
    request: dict[str, Any]


class RequestAcceptedNotificationPayload(CamelModel):
    conversation: dict[str, Any]
    accepted_by: int


M = TypeVar("M", bound=BaseModel)


def parse_payload(model: type[M], data: dict[str, Any]) -> M:
    """Validate an inbound payload, converting pydantic errors to ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = first.get("msg", "Invalid value")
        raise ValidationError(f"{loc}: {detail}" if loc else detail) from exc
