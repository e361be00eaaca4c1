"""Conversation list API router."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from app.dependencies import get_conversation_service, require_role
from app.schemas.auth_schema import MessageResponse
from app.schemas.conversation_schema import (
    ConversationDetail,
    ConversationListResponse,
)
from app.schemas.response_schema import ERROR_RESPONSES, ApiResponse, success_response
from app.services.conversation_service import ConversationService

router = APIRouter(
    prefix="/api/v1/conversations",
    tags=["conversations"],
    dependencies=[Depends(require_role("user", "admin"))],
    responses=ERROR_RESPONSES,
)

ConversationServiceDep = Annotated[
    ConversationService, Depends(get_conversation_service)
]


@router.get("", response_model=ApiResponse[ConversationListResponse])
async def list_conversations(
    service: ConversationServiceDep,
    cursor: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
) -> dict:
    """List the current user's conversations with cursor-based pagination."""
    result = await service.list_conversations(limit=limit, cursor=cursor)
    return success_response(result)


@router.get("/{conversation_id}", response_model=ApiResponse[ConversationDetail])
async def get_conversation(
    service: ConversationServiceDep,
    conversation_id: int = Path(gt=0),
) -> dict:
    result = await service.get_conversation(conversation_id)
    return success_response(result)


@router.delete("/{conversation_id}", response_model=ApiResponse[MessageResponse])
async def delete_conversation(
    service: ConversationServiceDep,
    conversation_id: int = Path(gt=0),
) -> dict:
    """Delete a conversation together with its messages."""
    result = await service.delete_conversation(conversation_id)
    return success_response(result)
