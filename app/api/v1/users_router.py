"""User search and profile endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile

from app.core.config import settings
from app.dependencies import get_media_service, get_user_service, require_role
from app.schemas.auth_schema import MessageResponse, UserResponse
from app.schemas.media_schema import ProfilePictureResponse
from app.schemas.response_schema import ERROR_RESPONSES, ApiResponse, success_response
from app.schemas.user_schema import (
    ChangePasswordRequest,
    UpdateProfileRequest,
    UserProfileResponse,
    UserSearchResponse,
)
from app.services.media_service import MediaService
from app.services.user_service import UserService

router = APIRouter(
    prefix="/api/v1/users",
    tags=["users"],
    dependencies=[Depends(require_role("user", "admin"))],
    responses=ERROR_RESPONSES,
)

UserServiceDep = Annotated[UserService, Depends(get_user_service)]


@router.get("/search", response_model=ApiResponse[UserSearchResponse])
async def search_users(
    service: UserServiceDep,
    query: str = Query(min_length=1, max_length=30),
) -> dict:
    """Find users by partial username."""
    result = await service.search(query)
    return success_response(result)


@router.put("/profile", response_model=ApiResponse[UserResponse])
async def update_profile(
    body: UpdateProfileRequest,
    service: UserServiceDep,
) -> dict:
    result = await service.update_profile(body)
    return success_response(result, message="Profile updated successfully")


@router.post("/profile/picture", response_model=ApiResponse[ProfilePictureResponse])
async def upload_profile_picture(
    service: Annotated[MediaService, Depends(get_media_service)],
    image: UploadFile = File(),
) -> dict:
    data = await image.read(settings.file_upload.max_file_size_bytes + 1)
    result = await service.upload_profile_picture(
        image.filename, image.content_type, data
    )
    return success_response(result, message="Profile picture uploaded successfully")


@router.put("/password", response_model=ApiResponse[MessageResponse])
async def change_password(
    body: ChangePasswordRequest,
    service: UserServiceDep,
) -> dict:
    result = await service.change_password(body)
    return success_response(result)


@router.get("/{user_id}", response_model=ApiResponse[UserProfileResponse])
async def get_user(
    service: UserServiceDep,
    user_id: int = Path(gt=0),
) -> dict:
    """Public profile of one user."""
    result = await service.get_profile(user_id)
    return success_response(result)
