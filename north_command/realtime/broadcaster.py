"""
Event Broadcaster
=================

Single point through which every committed domain change becomes socket
traffic. Domain triggers receive a :class:`Broadcaster` by injection and
call it strictly after their write is committed.

Delivery contract:
  - Best effort, at most once, no retry. A session that is not connected
    simply misses the event and catches up through REST.
  - Rooms for one event are emitted sequentially before the call returns.
    Nothing is ordered across concurrent events.
  - Public methods never raise. Per-room transport errors surface as
    :class:`BroadcastDeliveryFailure`, are logged, and are reported back in
    the returned :class:`BroadcastResult` for the caller to log or drop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from .events import (
    ChatMessageSent,
    DomainEvent,
    NotificationCreated,
    TaskChanged,
    TypingSignal,
)
from .registry import RoomRegistry

logger = logging.getLogger(__name__)

SnapshotLoader = Callable[[str], Awaitable[Optional[dict[str, Any]]]]


class Transport(Protocol):
    """The subset of ``socketio.AsyncServer`` the broadcaster needs."""

    async def emit(self, event: str, data: Any = None, to: Optional[str] = None, **kwargs: Any) -> None:
        ...


class BroadcastDeliveryFailure(Exception):
    """Emission to (part of) a room failed. Never propagated to triggers."""

    def __init__(self, room: str, event: str, delivered: int = 0, failed_sids: tuple[str, ...] = ()) -> None:
        self.room = room
        self.event = event
        self.delivered = delivered
        self.failed_sids = failed_sids
        super().__init__(
            f"{event} to room={room}: {len(failed_sids)} session(s) failed, {delivered} delivered"
        )


@dataclass
class BroadcastResult:
    """What one broadcast did: rooms targeted, emissions made, failures seen."""

    event: str
    rooms: list[str] = field(default_factory=list)
    delivered: int = 0
    failures: list[Exception] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class Broadcaster:
    """Resolves target rooms for a domain event and emits to their members."""

    def __init__(
        self,
        transport: Transport,
        registry: RoomRegistry,
        snapshot_loader: Optional[SnapshotLoader] = None,
    ) -> None:
        self._transport = transport
        self._registry = registry
        self._snapshot_loader = snapshot_loader

    # ------------------------------------------------------------------
    # Per-variant entry points
    # ------------------------------------------------------------------

    async def broadcast_task_changed(
        self,
        task_id: str,
        deleted: bool = False,
        *,
        snapshot: Optional[dict[str, Any]] = None,
        former_assignee_id: Optional[str] = None,
    ) -> BroadcastResult:
        """Emit ``task:update`` to the privileged room and the current assignee.

        Unless ``deleted`` or a ``snapshot`` is supplied, the current state
        is loaded through the snapshot loader so routing uses the
        post-commit assignee.
        """
        task_id = str(task_id)
        if not deleted and snapshot is None and self._snapshot_loader is not None:
            try:
                snapshot = await self._snapshot_loader(task_id)
            except Exception as exc:
                logger.exception("Snapshot lookup failed for task=%s; skipping task:update", task_id)
                return BroadcastResult(event=TaskChanged.event_name, failures=[exc])

        event = TaskChanged(
            task_id=task_id,
            snapshot=None if deleted else snapshot,
            deleted=deleted,
            former_assignee_id=str(former_assignee_id) if former_assignee_id else None,
        )
        return await self.dispatch(event)

    async def broadcast_notification_created(
        self,
        target_identity_id: str,
        notification: dict[str, Any],
    ) -> BroadcastResult:
        """Emit ``notification:new`` to the target identity and cc the privileged room."""
        return await self.dispatch(
            NotificationCreated(target_identity_id=str(target_identity_id), notification=notification)
        )

    async def broadcast_chat_message(
        self,
        msg: Union[ChatMessageSent, dict[str, Any]],
    ) -> BroadcastResult:
        """Emit ``chat:msg`` to recipient (``self=false``) and sender (``self=true``).

        Accepts either a :class:`ChatMessageSent` or a dict with the wire
        keys ``_id``, ``fromUserId``, ``toUserId``, ``message``, ``createdAt``.
        """
        if isinstance(msg, dict):
            msg = ChatMessageSent(
                message_id=str(msg["_id"]),
                from_id=str(msg["fromUserId"]),
                to_id=str(msg["toUserId"]),
                message=msg["message"],
                timestamp=msg["createdAt"],
            )
        return await self.dispatch(msg)

    async def relay_typing(self, from_id: str, to_id: str) -> BroadcastResult:
        """Forward a typing pulse to the target identity's room only."""
        return await self.dispatch(TypingSignal(from_id=str(from_id), to_id=str(to_id)))

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def dispatch(self, event: DomainEvent) -> BroadcastResult:
        """Emit ``event`` to every room it targets, one room after another."""
        result = BroadcastResult(event=event.event_name)
        try:
            deliveries = event.deliveries()
        except Exception as exc:
            logger.exception("Could not resolve rooms for %s", event.event_name)
            result.failures.append(exc)
            return result

        for room, payload in deliveries:
            result.rooms.append(room)
            try:
                result.delivered += await self._emit_to_room(room, event.event_name, payload)
            except BroadcastDeliveryFailure as exc:
                logger.warning("Broadcast delivery failure: %s", exc)
                result.delivered += exc.delivered
                result.failures.append(exc)
            except Exception as exc:
                logger.exception("Unexpected error broadcasting %s to room=%s", event.event_name, room)
                result.failures.append(exc)
        return result

    async def _emit_to_room(self, room: str, event_name: str, payload: dict[str, Any]) -> int:
        """Emit to each live member of ``room``; returns the number of emissions.

        Raises:
            BroadcastDeliveryFailure: If any member emission raised. All
                members are still attempted first.
        """
        sids = await self._registry.members_of(room)
        if not sids:
            logger.debug("No live sessions in room=%s for %s", room, event_name)
            return 0

        delivered = 0
        failed: list[str] = []
        for sid in sids:
            try:
                await self._transport.emit(event_name, payload, to=sid)
                delivered += 1
            except Exception:
                logger.debug("Emit %s to sid=%s failed", event_name, sid, exc_info=True)
                failed.append(sid)

        if failed:
            raise BroadcastDeliveryFailure(room, event_name, delivered, tuple(failed))

        logger.debug("Broadcast %s to room=%s sessions=%d", event_name, room, delivered)
        return delivered


def describe(result: BroadcastResult) -> str:
    """One-line summary for trigger logs."""
    status = "ok" if result.ok else f"{len(result.failures)} failure(s)"
    return f"{result.event} rooms={result.rooms} delivered={result.delivered} {status}"
