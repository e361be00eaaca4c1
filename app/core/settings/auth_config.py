"""JWT authentication configuration."""

from pydantic import BaseModel, SecretStr


class AuthConfig(BaseModel, frozen=True):
    """JWT authentication and login throttling settings."""

    secret_key: SecretStr
    algorithm: str
    access_token_expire_minutes: int
    refresh_token_expire_days: int
    max_login_attempts: int
    login_lockout_seconds: int
