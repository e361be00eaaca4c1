"""Global dependencies for the application."""

from collections.abc import Callable

from fastapi import Depends, Request
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from app.core.config import settings
from app.core.database import get_async_session
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.redis import get_redis
from app.repositories.conversation_repo import ConversationRepository
from app.repositories.message_repo import MessageRepository
from app.repositories.request_repo import ChatRequestRepository
from app.repositories.user_repo import UserRepository
from app.services.auth_service import AuthService
from app.services.conversation_service import ConversationService
from app.services.media_service import MediaService
from app.services.media_storage import CloudinaryStorage, MediaStorage
from app.services.message_service import MessageService
from app.services.realtime_hub import RealtimeHub
from app.services.request_service import ChatRequestService
from app.services.token_service import TokenService
from app.services.user_service import UserService

# --- Real-time core ---


def get_realtime_hub(conn: HTTPConnection) -> RealtimeHub:
    """The hub created at start-up; works for HTTP and websocket routes."""
    return conn.app.state.hub


# --- Auth dependencies ---


class CurrentUser(BaseModel):
    """Authenticated user extracted from request state."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    role: str


def get_token_service() -> TokenService:
    """Get TokenService backed by the active Redis client."""
    return TokenService(get_redis())


def get_user_repository(
    session: AsyncSession = Depends(get_async_session),
) -> UserRepository:
    """Get UserRepository bound to the current session."""
    return UserRepository(session)


def get_conversation_repository(
    session: AsyncSession = Depends(get_async_session),
) -> ConversationRepository:
    return ConversationRepository(session)


def get_message_repository(
    session: AsyncSession = Depends(get_async_session),
) -> MessageRepository:
    return MessageRepository(session)


def get_request_repository(
    session: AsyncSession = Depends(get_async_session),
) -> ChatRequestRepository:
    return ChatRequestRepository(session)


def get_auth_service(
    user_repo: UserRepository = Depends(get_user_repository),
    token_service: TokenService = Depends(get_token_service),
    session: AsyncSession = Depends(get_async_session),
) -> AuthService:
    """Get AuthService with all dependencies."""
    return AuthService(
        user_repo=user_repo,
        token_service=token_service,
        session=session,
    )


def get_current_user(request: Request) -> CurrentUser:
    """Extract the authenticated user from middleware-populated state."""
    state = getattr(request, "state", None)
    user_id = getattr(state, "user_id", None) if state else None
    if user_id is None:
        raise AuthenticationError(message="Not authenticated")
    return CurrentUser(
        id=state.user_id,
        email=state.email,
        role=state.role,
    )


def require_role(*allowed_roles: str) -> Callable[..., CurrentUser]:
    """Dependency factory that enforces role-based access control."""

    def _check(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                message=f"Role '{current_user.role}' is not permitted"
            )
        return current_user

    return _check


# --- Domain services ---


def get_user_service(
    user_repo: UserRepository = Depends(get_user_repository),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> UserService:
    return UserService(user_repo=user_repo, session=session, user_id=current_user.id)


def get_request_service(
    request_repo: ChatRequestRepository = Depends(get_request_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    session: AsyncSession = Depends(get_async_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
    current_user: CurrentUser = Depends(get_current_user),
) -> ChatRequestService:
    """Get ChatRequestService sharing the hub's conversation directory."""
    return ChatRequestService(
        request_repo=request_repo,
        user_repo=user_repo,
        directory=hub.directory,
        session=session,
        user_id=current_user.id,
    )


def get_conversation_service(
    conversation_repo: ConversationRepository = Depends(get_conversation_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> ConversationService:
    """Get ConversationService for the authenticated user."""
    return ConversationService(
        conversation_repo=conversation_repo,
        user_repo=user_repo,
        session=session,
        user_id=current_user.id,
    )


def get_message_service(
    message_repo: MessageRepository = Depends(get_message_repository),
    session: AsyncSession = Depends(get_async_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
    current_user: CurrentUser = Depends(get_current_user),
) -> MessageService:
    return MessageService(
        message_repo=message_repo,
        router=hub.router,
        session=session,
        user_id=current_user.id,
    )


def get_media_storage() -> MediaStorage:
    """Image host; tests override this with an in-memory double."""
    return CloudinaryStorage(settings.file_upload)


def get_media_service(
    storage: MediaStorage = Depends(get_media_storage),
    user_repo: UserRepository = Depends(get_user_repository),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> MediaService:
    return MediaService(
        storage=storage,
        config=settings.file_upload,
        user_repo=user_repo,
        session=session,
        user_id=current_user.id,
    )
