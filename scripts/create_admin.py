"""Create an admin account in the database.

Usage:
    python -m scripts.create_admin --email admin@test.com --password Admin1234! --username admin
"""

import argparse
import asyncio

import structlog

from app.core.database import Base, async_session_factory, engine
from app.core.logging import configure_logging
from app.core.security import hash_password
from app.repositories.user_repo import UserRepository
from app.schemas.auth_schema import normalize_username

logger = structlog.get_logger()


async def create_admin(email: str, password: str, username: str) -> None:
    """Create an admin user unless the email or username is already taken."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    email = email.lower().strip()
    username = normalize_username(username)

    async with async_session_factory() as session:
        repo = UserRepository(session)
        existing = await repo.find_by_login(email) or await repo.find_by_login(username)
        if existing:
            logger.warning(
                "Account already exists", user_id=existing.id, email=existing.email
            )
            return

        user = await repo.create(
            email=email,
            hashed_password=await hash_password(password),
            username=username,
            role="admin",
        )
        await session.commit()
        logger.info("Admin user created", user_id=user.id, email=email)

    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--email", required=True, help="Admin email")
    parser.add_argument("--password", required=True, help="Admin password")
    parser.add_argument("--username", default="admin", help="Admin username")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(create_admin(args.email, args.password, args.username))


if __name__ == "__main__":
    main()
