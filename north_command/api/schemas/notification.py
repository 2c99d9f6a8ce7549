"""
Pydantic v2 schemas for the Notifications API.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from north_command.models.notification import NotificationType

from .common import CamelModel, object_id_field


class NotificationOut(CamelModel):
    """Single notification; also the ``NotificationSnapshot`` on the socket."""

    id: uuid.UUID = object_id_field()
    user_id: uuid.UUID
    type: NotificationType
    message: str
    task_id: Optional[uuid.UUID] = None
    read_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class MarkReadRequest(CamelModel):
    """Body accepted by the mark-read endpoint. Only ``read=true`` exists today."""

    read: bool = True
