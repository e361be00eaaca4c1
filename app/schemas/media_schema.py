"""Image upload response schemas."""

from pydantic import BaseModel, ConfigDict

from app.schemas.auth_schema import UserResponse


class UploadedImageResponse(BaseModel):
    """Hosted image ready to be referenced from an image message."""

    model_config = ConfigDict(frozen=True)

    url: str
    width: int | None = None
    height: int | None = None
    size: int
    format: str | None = None


class ProfilePictureResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse
    image_url: str
