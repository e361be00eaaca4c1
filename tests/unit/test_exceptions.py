"""Tests for custom exception classes."""

from app.core.exceptions import (
    AccountLockedError,
    AlreadyConnectedError,
    AppException,
    AuthenticationError,
    AuthorizationError,
    ChatRequestNotFoundError,
    ConversationNotFoundError,
    InvalidCredentialsError,
    InvalidTokenError,
    MessageNotFoundError,
    NotFoundError,
    RequestAlreadyPendingError,
    RequestAlreadyProcessedError,
    StoreError,
    TokenBlacklistedError,
    TokenExpiredError,
    UserAlreadyExistsError,
    UsernameTakenError,
    UserNotFoundError,
    ValidationError,
)


class TestExceptions:
    """Verify exception status codes and messages."""

    def test_app_exception_defaults(self) -> None:
        exc = AppException(message="err", code="ERR")
        assert exc.status_code == 400
        assert exc.code == "ERR"

    def test_validation_error(self) -> None:
        exc = ValidationError("bad input")
        assert exc.status_code == 400
        assert exc.code == "VALIDATION_ERROR"
        assert exc.message == "bad input"

    def test_authentication_error(self) -> None:
        exc = AuthenticationError()
        assert exc.status_code == 401

    def test_token_expired_error(self) -> None:
        exc = TokenExpiredError()
        assert exc.status_code == 401
        assert exc.code == "TOKEN_EXPIRED"

    def test_token_blacklisted_error(self) -> None:
        exc = TokenBlacklistedError()
        assert exc.status_code == 401

    def test_invalid_token_error(self) -> None:
        exc = InvalidTokenError()
        assert exc.status_code == 401

    def test_invalid_credentials_error(self) -> None:
        exc = InvalidCredentialsError()
        assert exc.status_code == 401

    def test_authorization_error(self) -> None:
        exc = AuthorizationError()
        assert exc.status_code == 403

    def test_user_already_exists_error(self) -> None:
        exc = UserAlreadyExistsError()
        assert exc.status_code == 409

    def test_username_taken_error(self) -> None:
        exc = UsernameTakenError()
        assert exc.status_code == 409
        assert exc.code == "USERNAME_TAKEN"

    def test_not_found_family(self) -> None:
        for exc in (
            UserNotFoundError(),
            ConversationNotFoundError(),
            MessageNotFoundError(),
            ChatRequestNotFoundError(),
        ):
            assert isinstance(exc, NotFoundError)
            assert exc.status_code == 404

    def test_request_conflicts(self) -> None:
        assert RequestAlreadyPendingError().status_code == 409
        assert AlreadyConnectedError().status_code == 409
        assert RequestAlreadyProcessedError().code == "REQUEST_ALREADY_PROCESSED"

    def test_account_locked_error(self) -> None:
        exc = AccountLockedError()
        assert exc.status_code == 429

    def test_store_error(self) -> None:
        exc = StoreError()
        assert exc.status_code == 503
        assert exc.code == "STORE_ERROR"
