"""
Pydantic v2 schemas for the Tasks API.

``TaskOut`` is also the ``TaskSnapshot`` carried by ``task:update``
realtime events, so REST and socket clients see one shape.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from north_command.models.task import TaskPriority, TaskStatus
from north_command.models.user import UserRole

from .common import CamelModel, object_id_field


class TaskOut(CamelModel):
    """Full task snapshot."""

    id: uuid.UUID = object_id_field()
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_at: Optional[datetime] = None
    assignee_user_id: Optional[uuid.UUID] = None
    created_by_user_id: uuid.UUID
    updated_by_user_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class TaskCreateRequest(CamelModel):
    """Request body for creating a task (Overseer only)."""

    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=4000)
    priority: Optional[TaskPriority] = None
    due_at: Optional[datetime] = None
    assignee_user_id: Optional[uuid.UUID] = None


class TaskUpdateRequest(CamelModel):
    """Partial update. Only fields present in the body are applied.

    ``description``, ``dueAt`` and ``assigneeUserId`` may be sent as
    ``null`` to clear them; the remaining fields may not.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=4000)
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    due_at: Optional[datetime] = None
    assignee_user_id: Optional[uuid.UUID] = None

    @field_validator("title", "priority", "status")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v

    def changes(self) -> dict:
        """Model-attribute changes for the fields the client actually sent."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class TaskStatusRequest(CamelModel):
    """Request body for a field agent updating the status of their own task."""

    status: TaskStatus


class AgentOut(CamelModel):
    """Field agent summary for assignment pickers."""

    id: uuid.UUID = object_id_field()
    username: str
    role: UserRole
