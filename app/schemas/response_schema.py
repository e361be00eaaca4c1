"""Unified API response envelopes."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ErrorResponse(BaseModel):
    """Middleware / rate limit error: status, message and error code."""

    status: int
    message: str
    code: str


class ErrorDetail(BaseModel):
    code: str
    message: str


class DomainErrorResponse(BaseModel):
    """Body produced by the application exception handler."""

    success: bool = False
    error: ErrorDetail


class ApiResponse(BaseModel, Generic[T]):
    """Success response with status, message, and data (no code field)."""

    status: int = 200
    message: str = "Success"
    data: T | None = None


ERROR_RESPONSES: dict[int | str, dict] = {
    401: {"model": ErrorResponse, "description": "Missing or invalid token"},
    403: {"model": DomainErrorResponse, "description": "Not allowed"},
    404: {"model": DomainErrorResponse, "description": "Not found"},
}


def success_response(data: T, status: int = 200, message: str = "Success") -> dict:
    """Build a success response dict for returning from endpoints."""
    return {"status": status, "message": message, "data": data}
