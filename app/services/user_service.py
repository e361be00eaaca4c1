"""User discovery and profile management."""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    InvalidCredentialsError,
    UserNotFoundError,
    UsernameTakenError,
    ValidationError,
)
from app.core.security import hash_password, verify_password
from app.repositories.user_repo import UserRepository
from app.schemas.auth_schema import MessageResponse, UserResponse
from app.schemas.user_schema import (
    ChangePasswordRequest,
    UpdateProfileRequest,
    UserProfileResponse,
    UserSearchResponse,
    UserSummary,
)

logger = structlog.get_logger()

SEARCH_LIMIT = 20


class UserService:
    """Operations a signed-in user performs on accounts."""

    def __init__(
        self, user_repo: UserRepository, session: AsyncSession, user_id: int
    ) -> None:
        self._user_repo = user_repo
        self._session = session
        self._user_id = user_id

    async def get_me(self) -> UserResponse:
        user = await self._user_repo.find_by_id(self._user_id)
        if user is None:
            raise UserNotFoundError
        return UserResponse.model_validate(user)

    async def search(self, query: str) -> UserSearchResponse:
        """Partial username match, never including the caller."""
        query = query.strip()
        if not query:
            raise ValidationError("Search query is required")
        users = await self._user_repo.search_by_username(
            query, exclude_user_id=self._user_id, limit=SEARCH_LIMIT
        )
        summaries = [UserSummary.model_validate(u) for u in users]
        return UserSearchResponse(users=summaries, count=len(summaries))

    async def get_profile(self, user_id: int) -> UserProfileResponse:
        user = await self._user_repo.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError
        return UserProfileResponse.model_validate(user)

    async def update_profile(self, request: UpdateProfileRequest) -> UserResponse:
        user = await self._user_repo.find_by_id(self._user_id)
        if user is None:
            raise UserNotFoundError

        if request.username is not None and request.username != user.username:
            if await self._user_repo.exists_by_username(
                request.username, exclude_user_id=self._user_id
            ):
                raise UsernameTakenError

        user = await self._user_repo.update_profile(
            user, username=request.username, bio=request.bio
        )
        await self._session.commit()
        logger.info("Profile updated", user_id=self._user_id)
        return UserResponse.model_validate(user)

    async def change_password(self, request: ChangePasswordRequest) -> MessageResponse:
        user = await self._user_repo.find_by_id(self._user_id)
        if user is None:
            raise UserNotFoundError
        if not await verify_password(request.current_password, user.hashed_password):
            raise InvalidCredentialsError(message="Current password is incorrect")

        await self._user_repo.update_password(
            user, await hash_password(request.new_password)
        )
        await self._session.commit()
        logger.info("Password changed", user_id=self._user_id)
        return MessageResponse(message="Password updated successfully")
