"""
Shared FastAPI dependencies for the North Command backend.

Provides the async database session dependency used by all route handlers,
the realtime broadcaster injected into the domain triggers, and
authentication dependencies that turn a Bearer token into a verified
:class:`Identity`.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from north_command.core.config import settings
from north_command.models.user import UserRole
from north_command.realtime.auth import AuthenticationFailure, Identity, verify_credential
from north_command.realtime.broadcaster import Broadcaster

# ---------------------------------------------------------------------------
# Async engine & session factory
# ---------------------------------------------------------------------------
# The engine is created once at module import time.  The session factory
# produces lightweight ``AsyncSession`` instances that are scoped to a single
# request via the ``get_db`` dependency below.
# ---------------------------------------------------------------------------

_engine_kwargs: dict[str, Any] = {"echo": settings.sql_echo, "pool_pre_ping": True}
if not settings.database_url.startswith("sqlite"):
    # SQLite uses a pool without size limits
    _engine_kwargs.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )

engine = create_async_engine(settings.database_url, **_engine_kwargs)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session that is automatically closed after the
    request completes.  All route handlers should depend on this to get their
    ``AsyncSession``.

    Triggers commit explicitly before broadcasting; the commit here only
    covers handlers that never committed themselves.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ---------------------------------------------------------------------------
# Annotated type alias for convenience
# ---------------------------------------------------------------------------
DBSession = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Realtime broadcaster
# ---------------------------------------------------------------------------

def get_broadcaster() -> Broadcaster:
    """Return the process-wide broadcaster bound to the Socket.IO server."""
    from north_command.realtime.socketServer import broadcaster

    return broadcaster


BroadcasterDep = Annotated[Broadcaster, Depends(get_broadcaster)]


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> Identity:
    """Verify the Bearer token from the Authorization header.

    Raises 401 if the token is missing, malformed or expired.
    """
    try:
        return verify_credential(credentials.credentials if credentials else None)
    except AuthenticationFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )


CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]


def require_role(role: UserRole):
    """Dependency factory rejecting identities of any other role with 403."""

    async def _check(identity: CurrentIdentity) -> Identity:
        if identity.role != role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return identity

    return _check


OverseerIdentity = Annotated[Identity, Depends(require_role(UserRole.OVERSEER))]
AgentIdentity = Annotated[Identity, Depends(require_role(UserRole.FIELD_AGENT))]
