"""Authentication request/response schemas."""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")


def check_password_complexity(v: str) -> str:
    """Shared password policy for registration and password change."""
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", v):
        raise ValueError("Password must contain at least one digit")
    if not re.search(r"[!@#$%^&*(),.?\":{}|<>]", v):
        raise ValueError("Password must contain at least one special character")
    return v


def normalize_username(v: str) -> str:
    v = v.strip()
    if not USERNAME_PATTERN.match(v):
        raise ValueError("Username can only contain letters, numbers, and underscores")
    return v.lower()


class RegisterRequest(BaseModel):
    """User registration request."""

    email: EmailStr = Field(description="User email address")
    password: str = Field(
        min_length=8,
        max_length=128,
        description="Password (8-128 chars, must include uppercase, lowercase, digit, special char)",
    )
    username: str = Field(
        min_length=3,
        max_length=30,
        description="Unique handle (letters, digits, underscore)",
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return normalize_username(v)

    @field_validator("password")
    @classmethod
    def validate_password_complexity(cls, v: str) -> str:
        return check_password_complexity(v)


class LoginRequest(BaseModel):
    """User login request; ``login`` accepts an email or a username."""

    login: str = Field(min_length=1, description="Email address or username")
    password: str = Field(min_length=1, description="User password")

    @field_validator("login")
    @classmethod
    def normalize_login(cls, v: str) -> str:
        return v.lower().strip()


class RefreshRequest(BaseModel):
    """Token refresh request."""

    refresh_token: str = Field(description="Refresh token")


class LogoutRequest(BaseModel):
    """Logout request."""

    refresh_token: str | None = Field(
        default=None, description="Optional refresh token to revoke"
    )


class TokenResponse(BaseModel):
    """Token pair response."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token TTL in seconds")


class UserResponse(BaseModel):
    """Full representation of the authenticated user."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    email: str
    username: str
    role: str
    is_active: bool
    bio: str = ""
    profile_picture: str = ""
    is_online: bool = False
    last_seen: datetime | None = None
    created_at: datetime


class RegisterResponse(BaseModel):
    """Registration response with user info and tokens."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    tokens: TokenResponse


class LoginResponse(BaseModel):
    """Login response with user info and tokens."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    tokens: TokenResponse


class MessageResponse(BaseModel):
    """Simple message response."""

    model_config = ConfigDict(frozen=True)

    message: str


class TokenPayload(BaseModel):
    """Decoded JWT payload."""

    model_config = ConfigDict(frozen=True)

    sub: str
    email: str
    role: str
    type: str
    jti: str
    exp: int

    @property
    def user_id(self) -> int:
        return int(self.sub)
