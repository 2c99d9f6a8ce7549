"""
Chat Handler
============

Socket events for direct messaging. Messages themselves are sent over
REST (``POST /api/chat/dm/{userId}``) so they are persisted before being
pushed; the socket only carries the ephemeral typing indicator.

Events received FROM clients:
  chat:typing   { toUserId }
  chat:send     (legacy, rejected)

Events emitted TO clients:
  chat:typing       { fromUserId }
  chat:unsupported  { message }
"""

from __future__ import annotations

import logging
from typing import Any

from ..events import CHAT_TYPING
from ..socketServer import broadcaster, get_session, sio

logger = logging.getLogger(__name__)

CHAT_SEND = "chat:send"
CHAT_UNSUPPORTED = "chat:unsupported"
UNSUPPORTED_MESSAGE = "Use REST /api/chat/dm/:userId"


@sio.on(CHAT_TYPING)
async def handle_typing(sid: str, data: Any = None) -> dict[str, Any]:
    """Relay a typing pulse to the target identity's room.

    Payload: { "toUserId": "<uuid>" }

    The sender is always taken from the authenticated session, never from
    the payload. No persistence and no throttling.
    """
    session = get_session(sid)
    if session is None:
        return {"ok": False, "error": "Not authenticated"}

    to_user_id = data.get("toUserId") if isinstance(data, dict) else None
    if not isinstance(to_user_id, str) or not to_user_id.strip():
        logger.warning("chat:typing from sid=%s without toUserId", sid)
        return {"ok": False, "error": "toUserId is required"}

    result = await broadcaster.relay_typing(session.identity_id, to_user_id.strip())
    return {"ok": result.ok, "delivered": result.delivered}


@sio.on(CHAT_SEND)
async def handle_send(sid: str, data: Any = None) -> None:
    """Messages must go through REST so they are stored first."""
    await sio.emit(CHAT_UNSUPPORTED, {"message": UNSUPPORTED_MESSAGE}, to=sid)
