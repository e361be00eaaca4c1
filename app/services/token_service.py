"""JWT token creation, validation, and Redis-backed revocation state."""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Literal

import jwt
import redis.asyncio as redis

from app.core.config import settings
from app.core.exceptions import (
    InvalidTokenError,
    TokenBlacklistedError,
    TokenExpiredError,
)
from app.schemas.auth_schema import TokenPayload

BLACKLIST_PREFIX = "token_blacklist:"
LOGIN_ATTEMPTS_PREFIX = "login_attempts:"
REFRESH_LOCK_PREFIX = "refresh_lock:"

TokenType = Literal["access", "refresh"]


class TokenService:
    """Issue and check JWTs; track revoked tokens and failed logins in Redis."""

    def __init__(self, redis_client: redis.Redis) -> None:  # type: ignore[type-arg]
        self._redis = redis_client
        self._secret = settings.auth.secret_key.get_secret_value()
        self._algorithm = settings.auth.algorithm

    def _create_token(
        self,
        user_id: int,
        email: str,
        role: str,
        token_type: TokenType,
        lifetime: timedelta,
    ) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "type": token_type,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + lifetime,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def create_access_token(self, user_id: int, email: str, role: str) -> str:
        """Create a signed short-lived access token."""
        return self._create_token(
            user_id,
            email,
            role,
            "access",
            timedelta(minutes=settings.auth.access_token_expire_minutes),
        )

    def create_refresh_token(self, user_id: int, email: str, role: str) -> str:
        """Create a signed refresh token."""
        return self._create_token(
            user_id,
            email,
            role,
            "refresh",
            timedelta(days=settings.auth.refresh_token_expire_days),
        )

    def decode_token(self, token: str) -> TokenPayload:
        """Decode and validate signature and expiry of a JWT."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
            return TokenPayload(
                sub=payload["sub"],
                email=payload["email"],
                role=payload["role"],
                type=payload["type"],
                jti=payload["jti"],
                exp=payload["exp"],
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError from e
        except (jwt.InvalidTokenError, KeyError) as e:
            raise InvalidTokenError from e

    async def verify_access_token(self, token: str) -> TokenPayload:
        """Full access-token check: signature, expiry, type and revocation."""
        payload = self.decode_token(token)
        if payload.type != "access":
            raise InvalidTokenError
        if await self.is_blacklisted(payload.jti):
            raise TokenBlacklistedError
        return payload

    # --- Blacklist ---

    async def blacklist_token(self, jti: str, exp: int) -> None:
        """Revoke a token until its natural expiry."""
        ttl = exp - int(datetime.now(UTC).timestamp())
        if ttl > 0:
            await self._redis.setex(f"{BLACKLIST_PREFIX}{jti}", ttl, "1")

    async def is_blacklisted(self, jti: str) -> bool:
        result = await self._redis.get(f"{BLACKLIST_PREFIX}{jti}")
        return result is not None

    # --- Login attempts ---

    async def record_failed_login(self, login: str) -> int:
        """Count a failed login; the window starts at the first failure."""
        key = f"{LOGIN_ATTEMPTS_PREFIX}{login}"
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, settings.auth.login_lockout_seconds)
        return int(count)

    async def reset_login_attempts(self, login: str) -> None:
        await self._redis.delete(f"{LOGIN_ATTEMPTS_PREFIX}{login}")

    async def get_login_attempts(self, login: str) -> int:
        result = await self._redis.get(f"{LOGIN_ATTEMPTS_PREFIX}{login}")
        return int(result) if result else 0

    async def is_locked_out(self, login: str) -> bool:
        return await self.get_login_attempts(login) >= settings.auth.max_login_attempts

    # --- Refresh lock (one rotation per refresh token) ---

    async def acquire_refresh_lock(self, jti: str) -> bool:
        key = f"{REFRESH_LOCK_PREFIX}{jti}"
        return bool(await self._redis.set(key, "1", ex=10, nx=True))

    async def release_refresh_lock(self, jti: str) -> None:
        await self._redis.delete(f"{REFRESH_LOCK_PREFIX}{jti}")
