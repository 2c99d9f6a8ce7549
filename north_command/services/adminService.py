"""
Admin Service
=============

Overseer-only reporting and field agent management.

Removing a field agent is a trigger like the task mutations: the delete
is committed first, then every task the agent had been assigned is
pushed as ``task:update`` (now unassigned) so the Overseer's board
refreshes. Broadcasting never raises into the caller.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from north_command.core.persistence import commit_or_raise
from north_command.models.notification import Notification
from north_command.models.task import Task, TaskStatus
from north_command.models.user import User, UserRole
from north_command.realtime.auth import Identity
from north_command.realtime.broadcaster import Broadcaster, describe

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class AdminError(Exception):
    """Base exception for admin service errors."""
    pass


class ElfNotFoundError(AdminError):
    """Raised when the id does not belong to a field agent."""
    pass


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def get_analytics(db: AsyncSession) -> dict[str, Any]:
    """Task counts by status, open work per field agent, unread notifications."""
    status_rows = await db.execute(
        select(Task.status, func.count(Task.id)).group_by(Task.status)
    )
    by_status = {row[0]: row[1] for row in status_rows.all()}

    open_rows = await db.execute(
        select(Task.assignee_user_id, func.count(Task.id))
        .where(Task.status != TaskStatus.COMPLETED, Task.assignee_user_id.is_not(None))
        .group_by(Task.assignee_user_id)
    )
    open_by_user = {row[0]: row[1] for row in open_rows.all()}

    agents = await list_elves(db)
    workload = [
        {"user_id": a.id, "username": a.username, "open_count": open_by_user.get(a.id, 0)}
        for a in agents
    ]
    workload.sort(key=lambda w: (-w["open_count"], w["username"]))

    unread = await db.scalar(
        select(func.count(Notification.id)).where(Notification.read_at.is_(None))
    )

    return {
        "tasks": {
            "total": sum(by_status.values()),
            "open": by_status.get(TaskStatus.OPEN, 0),
            "in_progress": by_status.get(TaskStatus.IN_PROGRESS, 0),
            "completed": by_status.get(TaskStatus.COMPLETED, 0),
        },
        "elves": workload,
        "notifications": {"unread": unread or 0},
    }


async def list_elves(db: AsyncSession) -> list[User]:
    """Field agents sorted by username."""
    result = await db.execute(
        select(User)
        .where(User.role == UserRole.FIELD_AGENT)
        .order_by(User.username.asc())
    )
    return list(result.scalars().all())


async def get_elf_or_raise(db: AsyncSession, elf_id: uuid.UUID) -> User:
    elf = await db.get(User, elf_id)
    if elf is None or elf.role != UserRole.FIELD_AGENT:
        raise ElfNotFoundError(f"Elf {elf_id} not found")
    return elf


async def list_elf_tasks(db: AsyncSession, elf_id: uuid.UUID) -> list[Task]:
    """Tasks assigned to one field agent, most recently updated first.

    Raises:
        ElfNotFoundError: If ``elf_id`` is not a field agent.
    """
    await get_elf_or_raise(db, elf_id)
    result = await db.execute(
        select(Task)
        .where(Task.assignee_user_id == elf_id)
        .order_by(Task.updated_at.desc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------

async def delete_elf(
    db: AsyncSession,
    broadcaster: Broadcaster,
    actor: Identity,
    elf_id: uuid.UUID,
) -> None:
    """Remove a field agent and push the tasks it leaves unassigned.

    The database unassigns its tasks (``ON DELETE SET NULL``) and drops
    its notifications and direct messages (``ON DELETE CASCADE``). Tasks
    it last updated are re-attributed to ``actor`` first, since
    ``updated_by_user_id`` may not dangle.

    Raises:
        ElfNotFoundError: If ``elf_id`` is not a field agent.
        PersistenceFailure: If the delete could not be committed.
    """
    elf = await get_elf_or_raise(db, elf_id)

    assigned = await db.execute(select(Task.id).where(Task.assignee_user_id == elf_id))
    task_ids = list(assigned.scalars().all())

    await db.execute(
        update(Task)
        .where(Task.updated_by_user_id == elf_id)
        .values(updated_by_user_id=uuid.UUID(actor.identity_id))
        .execution_options(synchronize_session=False)
    )
    await db.delete(elf)
    await commit_or_raise(db, "elf delete")
    logger.info(
        "Elf deleted: id=%s unassigned_tasks=%d by=%s",
        elf_id, len(task_ids), actor.identity_id,
    )

    for task_id in task_ids:
        result = await broadcaster.broadcast_task_changed(str(task_id))
        logger.debug("Task %s pushed: %s", task_id, describe(result))
