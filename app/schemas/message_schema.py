"""Message content variants and message response schemas."""

from datetime import datetime
from typing import Annotated, Any, Literal
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
)

from app.core.config import settings
from app.models.message import MessageStatus, MessageType

METADATA_FIELDS = ("file_name", "file_size", "mime_type", "width", "height")


class MessageMetadata(BaseModel):
    """Optional attachment details for image and gif messages."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file_name: str | None = Field(default=None, max_length=255, alias="fileName")
    file_size: int | None = Field(default=None, ge=0, alias="fileSize")
    mime_type: str | None = Field(default=None, max_length=100, alias="mimeType")
    width: int | None = Field(default=None, ge=0)
    height: int | None = Field(default=None, ge=0)

    def as_columns(self) -> dict[str, Any]:
        return self.model_dump(by_alias=False, exclude_none=True)


# --- Content variants (tagged by ``type``) ---


class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    content: str = Field(min_length=1)

    @field_validator("content")
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message content cannot be blank")
        if len(v) > settings.chat.max_text_length:
            raise ValueError(
                f"Message cannot exceed {settings.chat.max_text_length} characters"
            )
        return v

    @property
    def metadata(self) -> MessageMetadata | None:
        return None


class _MediaContent(BaseModel):
    """Media referenced by an https URL."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(min_length=1, max_length=2048)
    metadata: MessageMetadata | None = None

    @field_validator("content")
    @classmethod
    def validate_url(cls, v: str) -> str:
        parsed = urlparse(v.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Media content must be an http(s) URL")
        return v.strip()


class ImageContent(_MediaContent):
    type: Literal["image"] = "image"


class GifContent(_MediaContent):
    type: Literal["gif"] = "gif"


class StickerContent(BaseModel):
    """Sticker identifier or URL."""

    model_config = ConfigDict(frozen=True)

    type: Literal["sticker"] = "sticker"
    content: str = Field(min_length=1, max_length=500)

    @field_validator("content")
    @classmethod
    def validate_sticker(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Sticker cannot be blank")
        return v.strip()

    @property
    def metadata(self) -> MessageMetadata | None:
        return None


MessageContent = Annotated[
    TextContent | ImageContent | GifContent | StickerContent,
    Field(discriminator="type"),
]

message_content_adapter: TypeAdapter[MessageContent] = TypeAdapter(MessageContent)


# --- Responses ---


class MessageResponse(BaseModel):
    """Persisted message as returned by the history API."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    conversation_id: int
    sender_id: int
    receiver_id: int
    type: MessageType
    content: str
    status: MessageStatus
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    width: int | None = None
    height: int | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_page: int
    total_pages: int
    total_messages: int
    has_more: bool


class MessagePageResponse(BaseModel):
    """One history page, in chronological order."""

    model_config = ConfigDict(frozen=True)

    messages: list[MessageResponse]
    pagination: Pagination


class MarkReadResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    updated_count: int
