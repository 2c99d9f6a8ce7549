"""
Notification API Routes
=======================

  GET   /api/notifications                       -- Own notifications, newest first
  PATCH /api/notifications/{notification_id}/read -- Mark one as read

Notifications are created by the task triggers and pushed live as
``notification:new``; these endpoints are the catch-up path.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Body, HTTPException, status

from north_command.api.deps import CurrentIdentity, DBSession
from north_command.api.schemas.notification import MarkReadRequest, NotificationOut
from north_command.services import notificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationOut], summary="List my notifications")
async def list_my_notifications(db: DBSession, identity: CurrentIdentity) -> list[NotificationOut]:
    notifications = await notificationService.list_notifications(db, uuid.UUID(identity.identity_id))
    return [NotificationOut.model_validate(n) for n in notifications]


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationOut,
    summary="Mark a notification as read",
)
async def mark_notification_read(
    db: DBSession,
    identity: CurrentIdentity,
    notification_id: uuid.UUID,
    body: Optional[MarkReadRequest] = Body(default=None),
) -> NotificationOut:
    try:
        notification = await notificationService.mark_notification_read(
            db,
            notification_id,
            uuid.UUID(identity.identity_id),
        )
    except notificationService.NotificationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        )
    return NotificationOut.model_validate(notification)
