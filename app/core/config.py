"""Application configuration using Pydantic Settings V2."""

from functools import cached_property
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.settings import (
    AppConfig,
    AuthConfig,
    ChatConfig,
    DatabaseConfig,
    FileUploadConfig,
    RateLimitConfig,
    RedisConfig,
    ServerConfig,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Flat fields are loaded directly from environment variables.
    Domain properties provide grouped access (e.g. settings.chat.max_text_length).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = Field(
        default="dm-chat",
        description="Application name",
    )
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment",
    )
    debug: bool = Field(
        default=True,
        description="Debug mode",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level",
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Server host",
    )
    port: int = Field(
        default=8004,
        ge=1,
        le=65535,
        description="Server port",
    )
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # JWT Auth
    jwt_secret_key: SecretStr = Field(
        description="JWT secret key for token signing",
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm",
    )
    jwt_access_token_expire_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="Access token expiration in minutes",
    )
    jwt_refresh_token_expire_days: int = Field(
        default=7,
        ge=1,
        le=90,
        description="Refresh token expiration in days",
    )
    max_login_attempts: int = Field(
        default=5,
        ge=1,
        description="Failed logins before the account is temporarily locked",
    )
    login_lockout_seconds: int = Field(
        default=300,
        ge=1,
        description="Lockout window for failed logins",
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable the slowapi request limiter",
    )
    rate_limit_default: str = Field(
        default="100/15minute",
        description="Default per-client request limit",
    )

    # Chat
    message_max_length: int = Field(
        default=5000,
        ge=1,
        le=20000,
        description="Maximum length of a text message",
    )
    history_page_size: int = Field(
        default=50,
        ge=1,
        description="Default number of messages per history page",
    )
    history_max_page_size: int = Field(
        default=100,
        ge=1,
        description="Upper bound for the history page size",
    )
    websocket_path: str = Field(
        default="/ws",
        description="Path of the real-time websocket endpoint",
    )
    typing_indicators_enabled: bool = Field(
        default=True,
        description="Relay typing / stop_typing events",
    )

    # File Upload
    max_file_size_mb: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum image size in MB",
    )
    allowed_extensions: str = Field(
        default="jpg,jpeg,png,gif,webp",
        description="Comma-separated list of allowed image extensions",
    )
    upload_folder: str = Field(
        default="dm-chat",
        description="Root folder for uploaded media on the media host",
    )
    cloudinary_cloud_name: str = Field(
        default="",
        description="Cloudinary cloud name",
    )
    cloudinary_api_key: str = Field(
        default="",
        description="Cloudinary API key",
    )
    cloudinary_api_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Cloudinary API secret",
    )

    # Database
    database_url: SecretStr = Field(
        description="Async database URL (mysql+aiomysql://...)",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # --- Domain properties ---

    @cached_property
    def app(self) -> AppConfig:
        """Application environment configuration."""
        return AppConfig(
            name=self.app_name,
            env=self.app_env,
            debug=self.debug,
            log_level=self.log_level,
        )

    @cached_property
    def server(self) -> ServerConfig:
        """Server configuration."""
        return ServerConfig(
            host=self.host,
            port=self.port,
            cors_origins=self.cors_origins,
        )

    @cached_property
    def auth(self) -> AuthConfig:
        """JWT authentication configuration."""
        return AuthConfig(
            secret_key=self.jwt_secret_key,
            algorithm=self.jwt_algorithm,
            access_token_expire_minutes=self.jwt_access_token_expire_minutes,
            refresh_token_expire_days=self.jwt_refresh_token_expire_days,
            max_login_attempts=self.max_login_attempts,
            login_lockout_seconds=self.login_lockout_seconds,
        )

    @cached_property
    def rate_limit(self) -> RateLimitConfig:
        """Request rate limiting configuration."""
        return RateLimitConfig(
            enabled=self.rate_limit_enabled,
            default_limit=self.rate_limit_default,
        )

    @cached_property
    def chat(self) -> ChatConfig:
        """Messaging and websocket configuration."""
        return ChatConfig(
            max_text_length=self.message_max_length,
            history_page_size=self.history_page_size,
            history_max_page_size=self.history_max_page_size,
            websocket_path=self.websocket_path,
            typing_enabled=self.typing_indicators_enabled,
        )

    @cached_property
    def file_upload(self) -> FileUploadConfig:
        """File upload configuration."""
        return FileUploadConfig(
            max_file_size_mb=self.max_file_size_mb,
            allowed_extensions=self.allowed_extensions,
            folder=self.upload_folder,
            cloud_name=self.cloudinary_cloud_name,
            api_key=self.cloudinary_api_key,
            api_secret=self.cloudinary_api_secret,
        )

    @cached_property
    def database(self) -> DatabaseConfig:
        """Database connection configuration."""
        return DatabaseConfig(url=self.database_url)

    @cached_property
    def redis(self) -> RedisConfig:
        """Redis connection configuration."""
        return RedisConfig(url=self.redis_url)

    # --- Convenience properties (delegate to domain configs) ---

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app.is_development


# Global settings instance
settings = Settings()
