"""User repository for database operations."""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


class UserRepository:
    """Encapsulates user-related database queries."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> User | None:
        """Find a user by email address."""
        result = await self._session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_by_login(self, identifier: str) -> User | None:
        """Find a user by email or username (both stored lowercase)."""
        value = identifier.lower().strip()
        result = await self._session.execute(
            select(User).where(or_(User.email == value, User.username == value))
        )
        return result.scalars().first()

    async def find_by_id(self, user_id: int) -> User | None:
        """Find a user by primary key."""
        result = await self._session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def find_by_ids(self, user_ids: Iterable[int]) -> dict[int, User]:
        """Load several users at once, keyed by id."""
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self._session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    async def create(
        self,
        email: str,
        hashed_password: str,
        username: str,
        role: str = "user",
    ) -> User:
        """Create a new user record."""
        user = User(
            email=email,
            hashed_password=hashed_password,
            username=username,
            role=role,
        )
        self._session.add(user)
        await self._session.flush()
        return user

    async def exists_by_email(self, email: str) -> bool:
        """Check if a user with this email exists."""
        result = await self._session.execute(select(User.id).where(User.email == email))
        return result.scalar_one_or_none() is not None

    async def exists_by_username(
        self, username: str, exclude_user_id: int | None = None
    ) -> bool:
        """Check if a username is taken, optionally ignoring one account."""
        stmt = select(User.id).where(User.username == username)
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != exclude_user_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def search_by_username(
        self, query: str, exclude_user_id: int, limit: int = 20
    ) -> list[User]:
        """Case-insensitive partial match on username, excluding the caller."""
        pattern = f"%{query.lower().strip()}%"
        result = await self._session.execute(
            select(User)
            .where(
                func.lower(User.username).like(pattern),
                User.id != exclude_user_id,
                User.is_active.is_(True),
            )
            .order_by(User.username.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update_profile(
        self, user: User, username: str | None = None, bio: str | None = None
    ) -> User:
        """Apply profile changes to a loaded user."""
        if username is not None:
            user.username = username
        if bio is not None:
            user.bio = bio
        await self._session.flush()
        await self._session.refresh(user)
        return user

    async def update_profile_picture(self, user: User, url: str) -> User:
        user.profile_picture = url
        await self._session.flush()
        await self._session.refresh(user)
        return user

    async def update_password(self, user: User, hashed_password: str) -> None:
        user.hashed_password = hashed_password
        await self._session.flush()

    async def set_presence(
        self, user_id: int, is_online: bool, last_seen: datetime | None = None
    ) -> None:
        """Persist the presence snapshot shown in profiles and search."""
        values: dict[str, object] = {"is_online": is_online}
        if last_seen is not None:
            values["last_seen"] = last_seen
        await self._session.execute(
            update(User).where(User.id == user_id).values(**values)
        )
