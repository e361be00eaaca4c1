"""Image hosting behind a small storage port."""

import asyncio
import io
from typing import Any, Protocol

import cloudinary.exceptions
import cloudinary.uploader
import structlog
from pydantic import BaseModel, ConfigDict

from app.core.exceptions import MediaUploadError
from app.core.settings import FileUploadConfig

logger = structlog.get_logger()

# Longest edge kept on the host; larger images are scaled down.
MAX_DIMENSION = 1000


class StoredMedia(BaseModel):
    """Where an uploaded image ended up and what it looks like."""

    model_config = ConfigDict(frozen=True)

    url: str
    width: int | None = None
    height: int | None = None
    size: int
    format: str | None = None
    public_id: str = ""


class MediaStorage(Protocol):
    async def upload(self, data: bytes, filename: str, folder: str) -> StoredMedia: ...


class CloudinaryStorage:
    """Uploads to Cloudinary with the account from FileUploadConfig.

    The SDK is synchronous, so each upload runs in a worker thread.
    """

    def __init__(self, config: FileUploadConfig) -> None:
        self._config = config

    async def upload(self, data: bytes, filename: str, folder: str) -> StoredMedia:
        if not self._config.is_configured:
            raise MediaUploadError("Image uploads are not configured")

        target = f"{self._config.folder}/{folder}"
        try:
            result: dict[str, Any] = await asyncio.to_thread(
                cloudinary.uploader.upload,
                io.BytesIO(data),
                filename=filename,
                folder=target,
                resource_type="auto",
                transformation=[
                    {"width": MAX_DIMENSION, "height": MAX_DIMENSION, "crop": "limit"},
                    {"quality": "auto"},
                    {"fetch_format": "auto"},
                ],
                cloud_name=self._config.cloud_name,
                api_key=self._config.api_key,
                api_secret=self._config.api_secret.get_secret_value(),
            )
        except cloudinary.exceptions.Error as exc:
            logger.exception("Image upload failed", folder=target, filename=filename)
            raise MediaUploadError from exc

        stored = StoredMedia(
            url=result["secure_url"],
            width=result.get("width"),
            height=result.get("height"),
            size=result.get("bytes", len(data)),
            format=result.get("format"),
            public_id=result.get("public_id", ""),
        )
        logger.info("Image uploaded", folder=target, public_id=stored.public_id)
        return stored
