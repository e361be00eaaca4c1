"""Media upload configuration."""

from pydantic import BaseModel, SecretStr


class FileUploadConfig(BaseModel, frozen=True):
    """Image upload limits and the media host credentials."""

    max_file_size_mb: int
    allowed_extensions: str
    folder: str
    cloud_name: str
    api_key: str
    api_secret: SecretStr

    @property
    def allowed_extensions_list(self) -> list[str]:
        """Get allowed extensions as a list."""
        return [ext.strip().lower() for ext in self.allowed_extensions.split(",")]

    @property
    def max_file_size_bytes(self) -> int:
        """Get maximum file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret.get_secret_value())
