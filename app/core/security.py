"""Password hashing utilities using bcrypt."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import bcrypt

BCRYPT_ROUNDS = 12

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="bcrypt")

# Compared against on unknown logins so response time does not leak user existence.
DUMMY_HASH = bcrypt.hashpw(b"dummy", bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def _hash(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def _check(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        return False


async def hash_password(password: str) -> str:
    """Hash a password off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, _hash, password)


async def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, _check, plain, hashed)
