"""
WebSocket Server
================

Socket.IO server for North Command. Pushes task, notification and direct
message changes to connected web clients, and relays typing indicators.

Architecture:
  - python-socketio AsyncServer mounted as ASGI middleware on FastAPI
  - Default in-memory client manager (single process)
  - JWT authentication on connect, extracting user id and role
  - Explicit :class:`RoomRegistry` decides who receives what; the
    broadcaster emits to individual sids taken from it

Connection lifecycle:
  1. Client connects with ``auth: { token: "<jwt>" }``
  2. Server verifies the token and extracts user id and role
  3. Session joins ``user:<id>``, plus ``overseer`` for the Overseer role
  4. On disconnect the session is pruned from every room
"""

from __future__ import annotations

import logging
from typing import Any

import socketio

from north_command.core.config import settings

from .auth import AuthenticationFailure, Identity, verify_credential
from .broadcaster import Broadcaster
from .registry import RoomRegistry, Session
from .snapshots import load_task_snapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Socket.IO server instance
# ---------------------------------------------------------------------------

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.ws_cors_allowed_origins,
    logger=False,
    engineio_logger=False,
    ping_timeout=settings.ws_ping_timeout,
    ping_interval=settings.ws_ping_interval,
    max_http_buffer_size=1_000_000,  # 1 MB
)


# ---------------------------------------------------------------------------
# Room registry and broadcaster shared by handlers and domain triggers
# ---------------------------------------------------------------------------

registry = RoomRegistry()

broadcaster = Broadcaster(sio, registry, snapshot_loader=load_task_snapshot)


def get_session(sid: str) -> Session | None:
    """Return the registry entry for a connected sid."""
    return registry.get_session(sid)


# ---------------------------------------------------------------------------
# Connect / disconnect
# ---------------------------------------------------------------------------

@sio.event
async def connect(sid: str, environ: dict[str, Any], auth: dict[str, Any] | None = None) -> bool:
    """Authenticate the connection and place it in its rooms.

    The client must provide ``auth: { token: "<jwt>" }`` on connect.
    Returns ``False`` to reject unauthenticated connections; nothing is
    registered for a rejected sid.
    """
    token = auth.get("token") if isinstance(auth, dict) else None
    try:
        identity: Identity = verify_credential(token)
    except AuthenticationFailure as exc:
        logger.info("Connection rejected for sid=%s -- %s", sid, exc)
        return False

    try:
        session = await registry.join(sid, identity)
    except Exception:
        logger.exception("Room registration failed for sid=%s; tearing down", sid)
        await registry.leave(sid)
        return False

    logger.info(
        "Connected: sid=%s user_id=%s role=%s rooms=%s",
        sid, session.identity_id, session.role.value, session.rooms,
    )
    return True


@sio.event
async def disconnect(sid: str, *args: Any) -> None:
    """Prune the session from every room it joined."""
    session = await registry.leave(sid)
    if session is not None:
        logger.info("Disconnected: sid=%s user_id=%s", sid, session.identity_id)
    else:
        logger.info("Disconnected: sid=%s (no registered user)", sid)


# ---------------------------------------------------------------------------
# ASGI app for mounting onto FastAPI
# ---------------------------------------------------------------------------

socket_app = socketio.ASGIApp(
    socketio_server=sio,
    socketio_path="/ws/socket.io",
)
