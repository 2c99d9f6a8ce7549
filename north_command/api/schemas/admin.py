"""
Pydantic v2 schemas for the Overseer admin API.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from north_command.models.user import UserRole

from .common import CamelModel, object_id_field


class TaskCounts(CamelModel):
    total: int
    open: int
    in_progress: int
    completed: int


class AgentWorkload(CamelModel):
    """Open (not completed) task count for one field agent."""

    user_id: uuid.UUID
    username: str
    open_count: int


class NotificationCounts(CamelModel):
    unread: int


class AnalyticsOut(CamelModel):
    tasks: TaskCounts
    elves: list[AgentWorkload]
    notifications: NotificationCounts


class ElfOut(CamelModel):
    """Field agent as listed on the admin screen."""

    id: uuid.UUID = object_id_field()
    username: str
    role: UserRole
    created_at: datetime
