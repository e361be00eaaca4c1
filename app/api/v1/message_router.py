"""Message history endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile

from app.core.config import settings
from app.dependencies import get_media_service, get_message_service, require_role
from app.schemas.media_schema import UploadedImageResponse
from app.schemas.message_schema import (
    MarkReadResponse,
    MessagePageResponse,
    MessageResponse,
)
from app.schemas.response_schema import ERROR_RESPONSES, ApiResponse, success_response
from app.services.media_service import MediaService
from app.services.message_service import MessageService

router = APIRouter(
    prefix="/api/v1/messages",
    tags=["messages"],
    dependencies=[Depends(require_role("user", "admin"))],
    responses=ERROR_RESPONSES,
)

MessageServiceDep = Annotated[MessageService, Depends(get_message_service)]
MediaServiceDep = Annotated[MediaService, Depends(get_media_service)]


@router.post("/upload", response_model=ApiResponse[UploadedImageResponse])
async def upload_image(
    service: MediaServiceDep,
    image: UploadFile = File(),
) -> dict:
    """Host an image for use in an ``image`` message."""
    data = await image.read(settings.file_upload.max_file_size_bytes + 1)
    result = await service.upload_message_image(
        image.filename, image.content_type, data
    )
    return success_response(result, message="Image uploaded successfully")


@router.get("/{conversation_id}", response_model=ApiResponse[MessagePageResponse])
async def get_messages(
    service: MessageServiceDep,
    conversation_id: int = Path(gt=0),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
) -> dict:
    """Page through history; received messages still ``sent`` become delivered."""
    result = await service.get_history(conversation_id, page=page, limit=limit)
    return success_response(result)


@router.put("/{conversation_id}/read", response_model=ApiResponse[MarkReadResponse])
async def mark_read(
    service: MessageServiceDep,
    conversation_id: int = Path(gt=0),
) -> dict:
    result = await service.mark_conversation_read(conversation_id)
    return success_response(result, message="Messages marked as read")


@router.delete("/{message_id}", response_model=ApiResponse[MessageResponse])
async def delete_message(
    service: MessageServiceDep,
    message_id: int = Path(gt=0),
) -> dict:
    """Soft-delete a message the caller sent."""
    result = await service.delete_message(message_id)
    return success_response(result, message="Message deleted successfully")
