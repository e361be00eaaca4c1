"""Chat request endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, status
from fastapi.responses import JSONResponse

from app.dependencies import get_request_service, require_role
from app.schemas.request_schema import (
    AcceptRequestResponse,
    ChatRequestListResponse,
    ChatRequestResponse,
    SendChatRequest,
)
from app.schemas.response_schema import ERROR_RESPONSES, ApiResponse, success_response
from app.services.request_service import ChatRequestService

router = APIRouter(
    prefix="/api/v1/requests",
    tags=["requests"],
    dependencies=[Depends(require_role("user", "admin"))],
    responses=ERROR_RESPONSES,
)

RequestServiceDep = Annotated[ChatRequestService, Depends(get_request_service)]


@router.post(
    "",
    response_model=ApiResponse[ChatRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def send_request(
    body: SendChatRequest,
    service: RequestServiceDep,
) -> JSONResponse:
    """Send a chat request; a previously rejected one is sent again."""
    result, created = await service.send(body)
    code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    message = "Chat request sent successfully" if created else "Request resent successfully"
    return JSONResponse(
        status_code=code,
        content=ApiResponse[ChatRequestResponse](
            status=code, message=message, data=result
        ).model_dump(mode="json"),
    )


@router.get("/received", response_model=ApiResponse[ChatRequestListResponse])
async def received_requests(service: RequestServiceDep) -> dict:
    """Pending requests addressed to the caller."""
    return success_response(await service.list_received())


@router.get("/sent", response_model=ApiResponse[ChatRequestListResponse])
async def sent_requests(service: RequestServiceDep) -> dict:
    """Pending requests the caller sent."""
    return success_response(await service.list_sent())


@router.put("/{request_id}/accept", response_model=ApiResponse[AcceptRequestResponse])
async def accept_request(
    service: RequestServiceDep,
    request_id: int = Path(gt=0),
) -> dict:
    result = await service.accept(request_id)
    return success_response(result, message="Request accepted successfully")


@router.put("/{request_id}/reject", response_model=ApiResponse[ChatRequestResponse])
async def reject_request(
    service: RequestServiceDep,
    request_id: int = Path(gt=0),
) -> dict:
    result = await service.reject(request_id)
    return success_response(result, message="Request rejected successfully")
