"""
Domain events and their wire encodings.

Each variant knows which rooms it targets and what payload each room
receives, so the broadcaster never inspects untyped dicts to route.

Server -> client events:

  task:update        { task: TaskSnapshot | null, deleted: bool }
  notification:new   { notification: NotificationSnapshot }
  chat:msg           { _id, fromUserId, toUserId, message, createdAt, self }
  chat:typing        { fromUserId }
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Optional, Union

from .rooms import PRIVILEGED_ROOM, identity_room

TASK_UPDATE = "task:update"
NOTIFICATION_NEW = "notification:new"
CHAT_MESSAGE = "chat:msg"
CHAT_TYPING = "chat:typing"

Delivery = tuple[str, dict[str, Any]]


@dataclass(frozen=True)
class TaskChanged:
    """A task was created, updated or deleted.

    For live tasks the assignee is read from the snapshot, i.e. the
    post-mutation assignee. A deleted task has no snapshot left, so the
    trigger passes the assignee it had before deletion.
    """

    event_name: ClassVar[str] = TASK_UPDATE

    task_id: str
    snapshot: Optional[dict[str, Any]]
    deleted: bool = False
    former_assignee_id: Optional[str] = None

    @property
    def assignee_id(self) -> Optional[str]:
        if self.deleted:
            return self.former_assignee_id
        if self.snapshot is None:
            return None
        return self.snapshot.get("assigneeUserId")

    def to_wire(self) -> dict[str, Any]:
        if self.deleted:
            return {"task": {"_id": self.task_id}, "deleted": True}
        return {"task": self.snapshot, "deleted": False}

    def deliveries(self) -> list[Delivery]:
        payload = self.to_wire()
        # The privileged room is always hit; an Overseer who is also the
        # assignee gets the event twice and replaces by id.
        targets = [(PRIVILEGED_ROOM, payload)]
        if self.assignee_id:
            targets.append((identity_room(str(self.assignee_id)), payload))
        return targets


@dataclass(frozen=True)
class NotificationCreated:
    """A notification was persisted for ``target_identity_id``; the Overseer is cc'd."""

    event_name: ClassVar[str] = NOTIFICATION_NEW

    target_identity_id: str
    notification: dict[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return {"notification": self.notification}

    def deliveries(self) -> list[Delivery]:
        payload = self.to_wire()
        return [
            (identity_room(self.target_identity_id), payload),
            (PRIVILEGED_ROOM, payload),
        ]


@dataclass(frozen=True)
class ChatMessageSent:
    """A direct message was persisted.

    The recipient's room gets ``self=false``; the sender's room gets an
    echo with ``self=true`` so every device of the sender stays in sync.
    """

    event_name: ClassVar[str] = CHAT_MESSAGE

    message_id: str
    from_id: str
    to_id: str
    message: str
    timestamp: Union[datetime, str]

    def to_wire(self, *, self_echo: bool) -> dict[str, Any]:
        created_at = (
            self.timestamp.isoformat()
            if isinstance(self.timestamp, datetime)
            else self.timestamp
        )
        return {
            "_id": self.message_id,
            "fromUserId": self.from_id,
            "toUserId": self.to_id,
            "message": self.message,
            "createdAt": created_at,
            "self": self_echo,
        }

    def deliveries(self) -> list[Delivery]:
        return [
            (identity_room(self.to_id), self.to_wire(self_echo=False)),
            (identity_room(self.from_id), self.to_wire(self_echo=True)),
        ]


@dataclass(frozen=True)
class TypingSignal:
    """One ephemeral "is typing" pulse. Clients expire it themselves."""

    event_name: ClassVar[str] = CHAT_TYPING

    from_id: str
    to_id: str

    def to_wire(self) -> dict[str, Any]:
        return {"fromUserId": self.from_id}

    def deliveries(self) -> list[Delivery]:
        return [(identity_room(self.to_id), self.to_wire())]


DomainEvent = Union[TaskChanged, NotificationCreated, ChatMessageSent, TypingSignal]
