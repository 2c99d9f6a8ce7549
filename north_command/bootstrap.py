"""
Idempotent demo bootstrap for local environments.

Creates the Overseer ``santa`` (password ``santa``) when no Overseer
exists, and field agents ``elf01``..``elf08`` (password ``elf``) when no
field agents exist. Enabled with ``SEED_DEMO_USERS=true``.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from north_command.core.persistence import commit_or_raise
from north_command.models.user import User, UserRole
from north_command.services.auth_service import hash_password

logger = logging.getLogger(__name__)

DEMO_OVERSEER = ("santa", "santa")
DEMO_AGENT_PASSWORD = "elf"
DEMO_AGENT_COUNT = 8


async def _count_role(db: AsyncSession, role: UserRole) -> int:
    result = await db.execute(select(func.count()).select_from(User).where(User.role == role))
    return result.scalar_one()


async def ensure_demo_defaults(db: AsyncSession) -> list[User]:
    """Create missing demo accounts and return the ones created."""
    created: list[User] = []

    if await _count_role(db, UserRole.OVERSEER) == 0:
        username, password = DEMO_OVERSEER
        created.append(User(username=username, password_hash=hash_password(password), role=UserRole.OVERSEER))

    if await _count_role(db, UserRole.FIELD_AGENT) == 0:
        agent_hash = hash_password(DEMO_AGENT_PASSWORD)
        created.extend(
            User(username=f"elf{idx:02d}", password_hash=agent_hash, role=UserRole.FIELD_AGENT)
            for idx in range(1, DEMO_AGENT_COUNT + 1)
        )

    if created:
        db.add_all(created)
        await commit_or_raise(db, "demo bootstrap")
        logger.info("Demo bootstrap created %d user(s)", len(created))
    return created
