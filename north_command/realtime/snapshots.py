"""
Wire snapshots of persisted entities for realtime payloads.

The broadcaster routes ``task:update`` by the assignee found in the
snapshot, so the snapshot must be read back after the write commits.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from north_command.api.schemas.chat import DirectMessageOut
from north_command.api.schemas.notification import NotificationOut
from north_command.api.schemas.task import TaskOut
from north_command.models.chat import ChatMessage
from north_command.models.notification import Notification
from north_command.models.task import Task

logger = logging.getLogger(__name__)


def task_snapshot(task: Task) -> dict[str, Any]:
    """JSON-ready ``TaskSnapshot`` for a task row."""
    return TaskOut.model_validate(task).model_dump(mode="json", by_alias=True)


def notification_snapshot(notification: Notification) -> dict[str, Any]:
    """JSON-ready ``NotificationSnapshot`` for a notification row."""
    return NotificationOut.model_validate(notification).model_dump(mode="json", by_alias=True)


def chat_message_snapshot(chat_message: ChatMessage) -> dict[str, Any]:
    """JSON-ready direct message, the same shape REST returns."""
    return DirectMessageOut.model_validate(chat_message).model_dump(mode="json", by_alias=True)


def make_task_snapshot_loader(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str], Awaitable[Optional[dict[str, Any]]]]:
    """Build a loader that reads a task in its own short-lived session."""

    async def load(task_id: str) -> Optional[dict[str, Any]]:
        try:
            key = uuid.UUID(str(task_id))
        except ValueError:
            logger.warning("Snapshot requested for malformed task id %r", task_id)
            return None
        async with session_factory() as db:
            task = await db.get(Task, key)
            return task_snapshot(task) if task is not None else None

    return load


async def load_task_snapshot(task_id: str) -> Optional[dict[str, Any]]:
    """Default loader bound to the application's session factory."""
    from north_command.api.deps import async_session_factory

    return await make_task_snapshot_loader(async_session_factory)(task_id)
