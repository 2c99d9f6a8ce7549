"""
Notification Service
====================

Persistence and delivery of in-app notifications. Notifications are
created by the task triggers, pushed as ``notification:new`` to the
target identity (with the Overseer cc'd), and later marked read by their
owner. They are never deleted here.

Delivery is best effort: a notification that was stored but could not be
pushed is still listed by ``GET /api/notifications``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from north_command.core.config import settings
from north_command.core.persistence import commit_or_raise
from north_command.models.notification import Notification, NotificationType
from north_command.realtime.broadcaster import Broadcaster, describe
from north_command.realtime.snapshots import notification_snapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class NotificationNotFoundError(Exception):
    """Raised when the notification does not exist or belongs to someone else."""
    pass


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

async def create_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    notification_type: NotificationType,
    message: str,
    task_id: Optional[uuid.UUID] = None,
) -> Notification:
    """Stage a notification row and flush it so its id is assigned.

    The caller owns the commit.
    """
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        message=message,
        task_id=task_id,
        read_at=None,
    )
    db.add(notification)
    await db.flush()
    return notification


async def emit_notification(broadcaster: Broadcaster, notification: Notification) -> None:
    """Push an already committed notification. Never raises."""
    result = await broadcaster.broadcast_notification_created(
        str(notification.user_id),
        notification_snapshot(notification),
    )
    logger.debug("Notification %s pushed: %s", notification.id, describe(result))


# ---------------------------------------------------------------------------
# Queries and owner actions
# ---------------------------------------------------------------------------

async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: Optional[int] = None,
) -> list[Notification]:
    """Return the owner's notifications, newest first."""
    stmt = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit or settings.notification_list_limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def mark_notification_read(
    db: AsyncSession,
    notification_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Notification:
    """Set ``read_at`` on a notification owned by ``user_id``.

    Marking an already-read notification keeps the original timestamp.

    Raises:
        NotificationNotFoundError: If no such notification belongs to the user.
    """
    stmt = select(Notification).where(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    )
    result = await db.execute(stmt)
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotificationNotFoundError(f"Notification {notification_id} not found")

    if notification.read_at is None:
        notification.read_at = datetime.now(timezone.utc)
        await commit_or_raise(db, "notification read")
    return notification
