"""User discovery and profile schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.auth_schema import check_password_complexity, normalize_username


class UserSummary(BaseModel):
    """Public profile shown in search results, requests and conversations."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    username: str
    profile_picture: str = ""
    bio: str = ""
    is_online: bool = False
    last_seen: datetime | None = None


class UserProfileResponse(UserSummary):
    """Public profile of a single user."""

    email: str
    created_at: datetime


class UserSearchResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    users: list[UserSummary]
    count: int


class UpdateProfileRequest(BaseModel):
    """Profile update; omitted fields are left unchanged."""

    username: str | None = Field(default=None, min_length=3, max_length=30)
    bio: str | None = Field(default=None, max_length=200)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str | None) -> str | None:
        return normalize_username(v) if v is not None else None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password_complexity(cls, v: str) -> str:
        return check_password_complexity(v)
