"""Rate limiting configuration."""

from pydantic import BaseModel


class RateLimitConfig(BaseModel, frozen=True):
    """slowapi limiter settings."""

    enabled: bool
    default_limit: str

    @property
    def default_limits(self) -> list[str]:
        return [self.default_limit] if self.default_limit else []
