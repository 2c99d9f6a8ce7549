"""
Task Service
============

Task queries and the four task mutation triggers. Every trigger runs the
same sequence:

  1. Validate input (existence, ownership, assignee).
  2. Apply the mutation and commit. A failed commit raises
     ``PersistenceFailure`` and nothing is broadcast.
  3. Persist the derived notifications. A failure here is logged and the
     task write stands.
  4. Broadcast ``task:update``.
  5. Broadcast one ``notification:new`` per derived notification.

Steps 3-5 never raise into the caller.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from north_command.core.persistence import PersistenceFailure, commit_or_raise
from north_command.models.notification import Notification, NotificationType
from north_command.models.task import Task, TaskPriority, TaskStatus
from north_command.models.user import User, UserRole
from north_command.realtime.auth import Identity
from north_command.realtime.broadcaster import Broadcaster, describe

from . import notificationService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class TaskError(Exception):
    """Base exception for task service errors."""
    pass


class TaskNotFoundError(TaskError):
    """Raised when the task does not exist."""
    pass


class TaskPermissionError(TaskError):
    """Raised when the caller may not change this task."""
    pass


class InvalidAssigneeError(TaskError):
    """Raised when the requested assignee is not a known user."""
    pass


# ---------------------------------------------------------------------------
# Derived notifications
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PendingNotification:
    """A notification a trigger decided to send, before it is stored."""

    user_id: uuid.UUID
    type: NotificationType
    message: str


async def _store_notifications(
    db: AsyncSession,
    task_id: uuid.UUID,
    pending: list[PendingNotification],
    *,
    task: Optional[Task] = None,
) -> list[Notification]:
    """Persist derived notifications in one commit; log and drop them on failure.

    A failed write rolls the session back, which expires every loaded
    instance. ``task`` (already committed) is reloaded so the caller can
    still return it.
    """
    if not pending:
        return []
    try:
        stored = [
            await notificationService.create_notification(db, p.user_id, p.type, p.message, task_id)
            for p in pending
        ]
        await commit_or_raise(db, "task notifications")
    except (PersistenceFailure, SQLAlchemyError):
        logger.exception("Derived notifications for task=%s were not stored", task_id)
        await db.rollback()
        if task is not None:
            await db.refresh(task)
        return []
    for n in stored:
        logger.info("Notification created: id=%s user=%s type=%s", n.id, n.user_id, n.type.value)
    return stored


async def _publish(
    broadcaster: Broadcaster,
    task_id: uuid.UUID,
    notifications: list[Notification],
    *,
    deleted: bool = False,
    former_assignee_id: Optional[uuid.UUID] = None,
) -> None:
    """Broadcast ``task:update`` then each ``notification:new``."""
    result = await broadcaster.broadcast_task_changed(
        str(task_id),
        deleted,
        former_assignee_id=str(former_assignee_id) if former_assignee_id else None,
    )
    logger.debug("Task %s pushed: %s", task_id, describe(result))
    for notification in notifications:
        await notificationService.emit_notification(broadcaster, notification)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def find_task_by_id(db: AsyncSession, task_id: uuid.UUID) -> Optional[Task]:
    """Look up a task by primary key."""
    return await db.get(Task, task_id)


async def _get_task_or_raise(db: AsyncSession, task_id: uuid.UUID) -> Task:
    task = await find_task_by_id(db, task_id)
    if task is None:
        raise TaskNotFoundError(f"Task {task_id} not found")
    return task


async def list_tasks(db: AsyncSession) -> list[Task]:
    """All tasks, most recently updated first."""
    result = await db.execute(select(Task).order_by(Task.updated_at.desc()))
    return list(result.scalars().all())


async def list_tasks_for_assignee(db: AsyncSession, user_id: uuid.UUID) -> list[Task]:
    """Tasks currently assigned to ``user_id``, most recently updated first."""
    result = await db.execute(
        select(Task)
        .where(Task.assignee_user_id == user_id)
        .order_by(Task.updated_at.desc())
    )
    return list(result.scalars().all())


async def list_field_agents(db: AsyncSession) -> list[User]:
    """Field agents sorted by username, for assignment pickers."""
    result = await db.execute(
        select(User)
        .where(User.role == UserRole.FIELD_AGENT)
        .order_by(User.username.asc())
    )
    return list(result.scalars().all())


async def _validate_assignee(db: AsyncSession, assignee_id: Optional[uuid.UUID]) -> None:
    if assignee_id is None:
        return
    if await db.get(User, assignee_id) is None:
        raise InvalidAssigneeError(f"Invalid assigneeUserId: {assignee_id}")


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------

async def create_task(
    db: AsyncSession,
    broadcaster: Broadcaster,
    actor: Identity,
    *,
    title: str,
    description: Optional[str] = None,
    priority: Optional[TaskPriority] = None,
    due_at: Any = None,
    assignee_user_id: Optional[uuid.UUID] = None,
) -> Task:
    """Create an OPEN task and notify its assignee, if any.

    Raises:
        InvalidAssigneeError: If ``assignee_user_id`` is not a known user.
        PersistenceFailure: If the task could not be committed.
    """
    await _validate_assignee(db, assignee_user_id)

    actor_id = uuid.UUID(actor.identity_id)
    task = Task(
        title=title,
        description=description,
        priority=priority or TaskPriority.MEDIUM,
        status=TaskStatus.OPEN,
        due_at=due_at,
        assignee_user_id=assignee_user_id,
        created_by_user_id=actor_id,
        updated_by_user_id=actor_id,
    )
    db.add(task)
    await commit_or_raise(db, "task create")
    logger.info("Task created: id=%s assignee=%s by=%s", task.id, assignee_user_id, actor_id)

    pending: list[PendingNotification] = []
    if assignee_user_id is not None:
        pending.append(PendingNotification(
            assignee_user_id,
            NotificationType.TASK_ASSIGNED,
            f"New task assigned: {task.title}",
        ))

    task_id = task.id
    notifications = await _store_notifications(db, task_id, pending, task=task)
    await _publish(broadcaster, task_id, notifications)
    return task


async def update_task(
    db: AsyncSession,
    broadcaster: Broadcaster,
    actor: Identity,
    task_id: uuid.UUID,
    changes: dict[str, Any],
) -> Task:
    """Apply a partial update as the Overseer.

    ``changes`` maps model attribute names to new values; only those keys
    are touched. A newly set assignee is told it was assigned, then every
    impacted identity (previous and current assignee) gets a status-change
    or generic update notification.

    Raises:
        TaskNotFoundError: If the task does not exist.
        InvalidAssigneeError: If a new assignee is not a known user.
        PersistenceFailure: If the update could not be committed.
    """
    task = await _get_task_or_raise(db, task_id)
    previous_assignee = task.assignee_user_id

    if "assignee_user_id" in changes:
        await _validate_assignee(db, changes["assignee_user_id"])

    for name, value in changes.items():
        setattr(task, name, value)
    task.updated_by_user_id = uuid.UUID(actor.identity_id)

    await commit_or_raise(db, "task update")
    current_assignee = task.assignee_user_id
    logger.info(
        "Task updated: id=%s fields=%s assignee=%s->%s",
        task.id, sorted(changes), previous_assignee, current_assignee,
    )

    pending: list[PendingNotification] = []
    if current_assignee is not None and current_assignee != previous_assignee:
        pending.append(PendingNotification(
            current_assignee,
            NotificationType.TASK_ASSIGNED,
            f"Task assigned to you: {task.title}",
        ))

    impacted = [uid for uid in dict.fromkeys((previous_assignee, current_assignee)) if uid is not None]
    status_changed = changes.get("status") is not None
    for uid in impacted:
        if status_changed:
            pending.append(PendingNotification(
                uid,
                NotificationType.TASK_STATUS_CHANGED,
                f"Task status changed to {task.status.value}: {task.title}",
            ))
        else:
            pending.append(PendingNotification(
                uid,
                NotificationType.TASK_UPDATED,
                f"Task updated: {task.title}",
            ))

    task_id = task.id
    notifications = await _store_notifications(db, task_id, pending, task=task)
    await _publish(broadcaster, task_id, notifications)
    return task


async def delete_task(
    db: AsyncSession,
    broadcaster: Broadcaster,
    actor: Identity,
    task_id: uuid.UUID,
) -> None:
    """Delete a task, tell its former assignee, and broadcast the deleted marker.

    Raises:
        TaskNotFoundError: If the task does not exist.
        PersistenceFailure: If the delete could not be committed.
    """
    task = await _get_task_or_raise(db, task_id)
    former_assignee = task.assignee_user_id
    title = task.title

    await db.delete(task)
    await commit_or_raise(db, "task delete")
    logger.info("Task deleted: id=%s by=%s", task_id, actor.identity_id)

    pending: list[PendingNotification] = []
    if former_assignee is not None:
        pending.append(PendingNotification(
            former_assignee,
            NotificationType.TASK_UPDATED,
            f"Task deleted: {title}",
        ))

    notifications = await _store_notifications(db, task_id, pending)
    await _publish(
        broadcaster,
        task_id,
        notifications,
        deleted=True,
        former_assignee_id=former_assignee,
    )


async def update_own_task_status(
    db: AsyncSession,
    broadcaster: Broadcaster,
    actor: Identity,
    task_id: uuid.UUID,
    status: TaskStatus,
) -> Task:
    """Set the status of a task assigned to the calling field agent.

    Any status may be set from any other; only the assignee may do it here.

    Raises:
        TaskNotFoundError: If the task does not exist.
        TaskPermissionError: If the caller is not the task's assignee.
        PersistenceFailure: If the update could not be committed.
    """
    task = await _get_task_or_raise(db, task_id)
    actor_id = uuid.UUID(actor.identity_id)
    if task.assignee_user_id != actor_id:
        raise TaskPermissionError("Only the assignee may change this task's status")

    task.status = status
    task.updated_by_user_id = actor_id
    await commit_or_raise(db, "task status update")
    logger.info("Task status updated: id=%s status=%s by=%s", task.id, status.value, actor_id)

    notifications = await _store_notifications(db, task_id, [
        PendingNotification(
            actor_id,
            NotificationType.TASK_STATUS_CHANGED,
            f"Status updated to {task.status.value}: {task.title}",
        ),
    ], task=task)
    await _publish(broadcaster, task_id, notifications)
    return task
