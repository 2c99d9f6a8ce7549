"""
Authentication service for North Command.

Handles login for both roles, field agent self-registration and JWT
issuance. Uses bcrypt for password hashing and PyJWT for token
generation. Verification of incoming tokens lives in
``north_command.realtime.auth`` so the socket server and REST share it.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from north_command.core.config import settings
from north_command.core.persistence import commit_or_raise
from north_command.models.user import User, UserRole


class InvalidCredentialsError(Exception):
    """Unknown username, wrong password, or wrong role for this login."""
    pass


class UsernameTakenError(Exception):
    """Registration attempted with a username that already exists."""
    pass


# ---------------------------------------------------------------------------
# Password hashing (bcrypt direct usage)
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt."""
    # bcrypt requires bytes; truncate to 72 bytes (bcrypt limit)
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=10)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a bcrypt hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pw_bytes, hashed_bytes)


# ---------------------------------------------------------------------------
# JWT token generation
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: uuid.UUID,
    role: UserRole,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a bearer token carrying ``sub`` and ``role``."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes or settings.jwt_expires_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


# ---------------------------------------------------------------------------
# Login / registration
# ---------------------------------------------------------------------------


async def get_user_by_username(
    db: AsyncSession,
    username: str,
    role: Optional[UserRole] = None,
) -> Optional[User]:
    """Look up a user by username, optionally restricted to one role."""
    stmt = select(User).where(User.username == username)
    if role is not None:
        stmt = stmt.where(User.role == role)
    result = await db.execute(stmt)
    return result.scalars().first()


async def authenticate(
    db: AsyncSession,
    username: str,
    password: str,
    role: UserRole,
) -> tuple[User, str]:
    """Check credentials for the given role.

    Returns:
        Tuple of (user, token).

    Raises:
        InvalidCredentialsError: If no user of that role matches the password.
    """
    user = await get_user_by_username(db, username.strip(), role)
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentialsError("Invalid credentials")
    return user, create_access_token(user.id, user.role)


async def register_agent(
    db: AsyncSession,
    username: str,
    password: str,
) -> tuple[User, str]:
    """Create a field agent account and return it with a fresh token.

    Raises:
        UsernameTakenError: If the username already exists (any role).
    """
    username = username.strip()
    if await get_user_by_username(db, username) is not None:
        raise UsernameTakenError("Username already exists")

    user = User(
        username=username,
        password_hash=hash_password(password),
        role=UserRole.FIELD_AGENT,
    )
    db.add(user)
    await commit_or_raise(db, "agent registration")
    return user, create_access_token(user.id, user.role)
