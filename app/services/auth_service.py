"""
Authentication service — registration, login, and request rate limiting.

JWT token creation/verification is delegated to ``app.core.security``.
This module re-exports those functions and adds account lifecycle and
Redis-backed fixed-window rate limiting.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthenticationError, ConflictError
from app.models.user import User
from app.redis_client import hit_window

# Re-export JWT functions from core.security so callers have one import
from app.core.security import (  # noqa: F401
    configure_keys,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
    verify_token,
)
from app.services import audit_service

logger = logging.getLogger(__name__)


def issue_token(user: User) -> str:
    return create_access_token(str(user.id), user.email, user.role.value)


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------


async def register(db: AsyncSession, name: str, email: str, password: str) -> tuple[User, str]:
    """Create a USER account and return it with an access token."""
    email = email.lower()
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("User with this email already exists")

    user = User(name=name, email=email, password_hash=hash_password(password))
    db.add(user)
    await audit_service.record(
        db, action="USER_REGISTERED", resource="USER", user_id=user.id,
        details={"email": email},
    )
    await db.flush()

    logger.info("User registered: %s (%s)", user.email, user.account_number)
    return user, issue_token(user)


async def login(db: AsyncSession, email: str, password: str) -> tuple[User, str]:
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", email)
        raise AuthenticationError("Invalid email or password")

    logger.info("User logged in: %s", user.email)
    return user, issue_token(user)


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


async def check_rate_limit(key: str, limit: int, window_seconds: int, redis) -> bool:
    """
    Fixed-window counter: at most *limit* hits per *window_seconds* per key.

    Returns True if within limit, False if exceeded.
    """
    count = await hit_window(redis, key, window_seconds)
    if count > limit:
        logger.warning("Rate limit exceeded for %s (%d/%d)", key, count, limit)
        return False
    return True
