"""
In-process room registry.

Source of truth for which live session ids sit in which room. Connection
events mutate it under a lock; the broadcaster reads a copied member list
so an emission loop never sees a session half-removed by a concurrent
disconnect. Single process only.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from north_command.models.user import UserRole

from .auth import Identity
from .rooms import rooms_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """A live realtime connection and the rooms it joined."""

    sid: str
    identity_id: str
    role: UserRole
    rooms: tuple[str, ...]


class RoomRegistry:
    """Maps sid -> Session and room -> set of sids."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._rooms: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    async def join(self, sid: str, identity: Identity) -> Session:
        """Register a verified session in the rooms derived from its identity."""
        session = Session(
            sid=sid,
            identity_id=identity.identity_id,
            role=identity.role,
            rooms=rooms_for(identity),
        )
        async with self._lock:
            previous = self._sessions.pop(sid, None)
            if previous is not None:
                self._discard(previous)
            self._sessions[sid] = session
            for room in session.rooms:
                self._rooms.setdefault(room, set()).add(sid)
        logger.debug("sid=%s joined rooms=%s", sid, session.rooms)
        return session

    async def leave(self, sid: str) -> Optional[Session]:
        """Prune a session from every room it occupies. Unknown sids are a no-op."""
        async with self._lock:
            session = self._sessions.pop(sid, None)
            if session is not None:
                self._discard(session)
        return session

    async def members_of(self, room: str) -> list[str]:
        """Snapshot of the sids currently in ``room``."""
        async with self._lock:
            return list(self._rooms.get(room, ()))

    def get_session(self, sid: str) -> Optional[Session]:
        return self._sessions.get(sid)

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def _discard(self, session: Session) -> None:
        # Caller holds the lock. Empty rooms are dropped so stale keys do not accumulate.
        for room in session.rooms:
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(session.sid)
            if not members:
                del self._rooms[room]
