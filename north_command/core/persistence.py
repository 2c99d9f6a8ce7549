"""
Commit helper shared by the domain triggers.

A trigger must never broadcast unless its write is durable, so every
mutation path commits through :func:`commit_or_raise` before touching the
broadcaster. Database errors are rolled back and re-raised as
:class:`PersistenceFailure`, which the API layer turns into a 500.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class PersistenceFailure(Exception):
    """Raised when a mutation could not be committed."""


async def commit_or_raise(db: AsyncSession, action: str) -> None:
    """Commit the session or roll back and raise ``PersistenceFailure``."""
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        logger.error("Commit failed during %s: %s", action, exc)
        await db.rollback()
        raise PersistenceFailure(f"Failed to persist {action}") from exc
