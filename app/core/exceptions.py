"""Application exception classes and handlers."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.schemas.response_schema import DomainErrorResponse, ErrorDetail


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


# --- Validation (400) ---


class ValidationError(AppException):
    """Malformed or semantically invalid input."""

    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(message=message, code="VALIDATION_ERROR", status_code=400)


# --- Authentication (401) ---


class AuthenticationError(AppException):
    """Base authentication error."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message=message, code="AUTHENTICATION_ERROR", status_code=401)


class TokenExpiredError(AppException):
    """Token has expired."""

    def __init__(self) -> None:
        super().__init__(
            message="Token has expired",
            code="TOKEN_EXPIRED",
            status_code=401,
        )


class TokenBlacklistedError(AppException):
    """Token has been revoked."""

    def __init__(self) -> None:
        super().__init__(
            message="Token has been revoked",
            code="TOKEN_BLACKLISTED",
            status_code=401,
        )


class InvalidTokenError(AppException):
    """Token is invalid."""

    def __init__(self) -> None:
        super().__init__(
            message="Invalid token",
            code="INVALID_TOKEN",
            status_code=401,
        )


class InvalidCredentialsError(AppException):
    """Invalid login identifier or password."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(
            message=message,
            code="INVALID_CREDENTIALS",
            status_code=401,
        )


# --- Authorization (403) ---


class AuthorizationError(AppException):
    """Insufficient permissions."""

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message=message, code="AUTHORIZATION_ERROR", status_code=403)


# --- Not Found (404) ---


class NotFoundError(AppException):
    """Referenced entity does not exist."""

    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND") -> None:
        super().__init__(message=message, code=code, status_code=404)


class UserNotFoundError(NotFoundError):
    """User not found."""

    def __init__(self) -> None:
        super().__init__(message="User not found", code="USER_NOT_FOUND")


class ConversationNotFoundError(NotFoundError):
    """Conversation not found."""

    def __init__(self) -> None:
        super().__init__(
            message="Conversation not found", code="CONVERSATION_NOT_FOUND"
        )


class MessageNotFoundError(NotFoundError):
    """Message not found."""

    def __init__(self) -> None:
        super().__init__(message="Message not found", code="MESSAGE_NOT_FOUND")


class ChatRequestNotFoundError(NotFoundError):
    """Chat request not found."""

    def __init__(self) -> None:
        super().__init__(message="Request not found", code="REQUEST_NOT_FOUND")


# --- Conflict (409) ---


class ConflictError(AppException):
    """State conflict with an existing record."""

    def __init__(self, message: str, code: str = "CONFLICT") -> None:
        super().__init__(message=message, code=code, status_code=409)


class UserAlreadyExistsError(ConflictError):
    """User with this email already exists."""

    def __init__(self) -> None:
        super().__init__(
            message="User with this email already exists",
            code="USER_ALREADY_EXISTS",
        )


class UsernameTakenError(ConflictError):
    """Username is already used by another account."""

    def __init__(self) -> None:
        super().__init__(message="Username already taken", code="USERNAME_TAKEN")


class RequestAlreadyPendingError(ConflictError):
    """A pending chat request already exists for this pair."""

    def __init__(self) -> None:
        super().__init__(message="Request already pending", code="REQUEST_PENDING")


class AlreadyConnectedError(ConflictError):
    """The two users already accepted a chat request."""

    def __init__(self) -> None:
        super().__init__(
            message="Already connected with this user", code="ALREADY_CONNECTED"
        )


class RequestAlreadyProcessedError(ConflictError):
    """Chat request is no longer pending."""

    def __init__(self) -> None:
        super().__init__(
            message="Request already processed", code="REQUEST_ALREADY_PROCESSED"
        )


# --- Rate Limit (429) ---


class AccountLockedError(AppException):
    """Too many failed login attempts."""

    def __init__(self) -> None:
        super().__init__(
            message="Too many failed login attempts. Please try again later.",
            code="ACCOUNT_LOCKED",
            status_code=429,
        )


# --- Store (503) ---


class StoreError(AppException):
    """Durable store unavailable or a constraint could not be satisfied."""

    def __init__(self, message: str = "Storage temporarily unavailable") -> None:
        super().__init__(message=message, code="STORE_ERROR", status_code=503)


class MediaUploadError(AppException):
    """The media host rejected the upload or is not configured."""

    def __init__(self, message: str = "Error uploading image") -> None:
        super().__init__(message=message, code="UPLOAD_FAILED", status_code=502)


# --- Exception Handlers ---


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Central exception handler for AppException."""
    body = DomainErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request body/query validation failures as 422 error responses."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "status": 422,
            "message": "Validation failed",
            "code": "VALIDATION_ERROR",
            "errors": errors,
        },
    )
