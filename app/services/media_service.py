"""Image uploads for message attachments and profile pictures."""

from pathlib import PurePath

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import UserNotFoundError, ValidationError
from app.core.settings import FileUploadConfig
from app.repositories.user_repo import UserRepository
from app.schemas.auth_schema import UserResponse
from app.schemas.media_schema import ProfilePictureResponse, UploadedImageResponse
from app.services.media_storage import MediaStorage

logger = structlog.get_logger()

MESSAGES_FOLDER = "messages"
PROFILES_FOLDER = "profiles"


class MediaService:
    """Checks an image against the upload limits, then hands it to storage."""

    def __init__(
        self,
        storage: MediaStorage,
        config: FileUploadConfig,
        user_repo: UserRepository,
        session: AsyncSession,
        user_id: int,
    ) -> None:
        self._storage = storage
        self._config = config
        self._user_repo = user_repo
        self._session = session
        self._user_id = user_id

    def check_image(
        self, filename: str | None, content_type: str | None, data: bytes
    ) -> str:
        """Validate an upload and return its filename."""
        if not filename or not data:
            raise ValidationError("Please upload an image")
        extension = PurePath(filename).suffix.lstrip(".").lower()
        if extension not in self._config.allowed_extensions_list:
            raise ValidationError(
                "Only image files are allowed: "
                + ", ".join(self._config.allowed_extensions_list)
            )
        if content_type and not content_type.startswith("image/"):
            raise ValidationError("Only image files are allowed")
        if len(data) > self._config.max_file_size_bytes:
            raise ValidationError(
                f"Image exceeds {self._config.max_file_size_mb} MB"
            )
        return filename

    async def upload_message_image(
        self, filename: str | None, content_type: str | None, data: bytes
    ) -> UploadedImageResponse:
        name = self.check_image(filename, content_type, data)
        stored = await self._storage.upload(data, name, MESSAGES_FOLDER)
        logger.info("Message image uploaded", user_id=self._user_id, size=stored.size)
        return UploadedImageResponse(
            url=stored.url,
            width=stored.width,
            height=stored.height,
            size=stored.size,
            format=stored.format,
        )

    async def upload_profile_picture(
        self, filename: str | None, content_type: str | None, data: bytes
    ) -> ProfilePictureResponse:
        """Host the image and point the caller's profile at it."""
        name = self.check_image(filename, content_type, data)
        user = await self._user_repo.find_by_id(self._user_id)
        if user is None:
            raise UserNotFoundError

        stored = await self._storage.upload(data, name, PROFILES_FOLDER)
        user = await self._user_repo.update_profile_picture(user, stored.url)
        await self._session.commit()
        logger.info("Profile picture updated", user_id=self._user_id)
        return ProfilePictureResponse(
            user=UserResponse.model_validate(user), image_url=stored.url
        )
