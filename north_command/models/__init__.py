"""
North Command SQLAlchemy Models
===============================

Central import point for all ORM models. Import ``Base`` from here for
Alembic auto-generation and for the ``create_all`` convenience in tests.

Usage::

    from north_command.models import Base, User, Task, Notification
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# -- Users --
from .user import User, UserRole

# -- Tasks --
from .task import Task, TaskPriority, TaskStatus

# -- Notifications --
from .notification import Notification, NotificationType

# -- Direct messages --
from .chat import ChatMessage

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "User",
    "UserRole",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "Notification",
    "NotificationType",
    "ChatMessage",
]
