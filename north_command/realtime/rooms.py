"""
Room naming.

Rooms are never stored: they are derived from an identity at connect
time. Every session joins its identity room; Overseer sessions also join
the single privileged room.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from north_command.models.user import UserRole

if TYPE_CHECKING:
    from .auth import Identity

PRIVILEGED_ROOM = "overseer"


def identity_room(identity_id: str) -> str:
    """Room shared by every live session of one identity."""
    return f"user:{identity_id}"


def rooms_for(identity: "Identity") -> tuple[str, ...]:
    """Rooms a freshly verified session joins. Nothing else ever joins rooms."""
    if identity.role == UserRole.OVERSEER:
        return (identity_room(identity.identity_id), PRIVILEGED_ROOM)
    return (identity_room(identity.identity_id),)
