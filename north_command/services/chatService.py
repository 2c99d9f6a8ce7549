"""
Chat Service
============

Direct messages between two users. Messages are written through REST,
committed, and only then pushed as ``chat:msg`` to both participants:
the recipient's room with ``self=false`` and the sender's own room with
``self=true`` so the sender's other devices stay in sync.

Business rules:
  - Bodies longer than ``max_chat_message_length`` are truncated.
  - Blank bodies are rejected.
  - The recipient must be an existing user.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from north_command.core.config import settings
from north_command.core.persistence import commit_or_raise
from north_command.models.chat import ChatMessage
from north_command.models.user import User, UserRole
from north_command.realtime.broadcaster import Broadcaster, describe
from north_command.realtime.snapshots import chat_message_snapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ChatError(Exception):
    """Base exception for chat service errors."""
    pass


class EmptyMessageError(ChatError):
    """Raised when the message body is blank."""
    pass


class RecipientNotFoundError(ChatError):
    """Raised when the recipient does not exist."""
    pass


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def get_overseer(db: AsyncSession) -> Optional[User]:
    """Return the Overseer account, the default peer for every field agent."""
    result = await db.execute(
        select(User).where(User.role == UserRole.OVERSEER).order_by(User.created_at.asc()).limit(1)
    )
    return result.scalar_one_or_none()


async def list_direct_messages(
    db: AsyncSession,
    user_id: uuid.UUID,
    peer_id: uuid.UUID,
    limit: Optional[int] = None,
) -> list[ChatMessage]:
    """Conversation between two users in both directions, oldest first."""
    stmt = (
        select(ChatMessage)
        .where(
            or_(
                and_(ChatMessage.from_user_id == user_id, ChatMessage.to_user_id == peer_id),
                and_(ChatMessage.from_user_id == peer_id, ChatMessage.to_user_id == user_id),
            )
        )
        .order_by(ChatMessage.created_at.asc())
        .limit(limit or settings.dm_history_limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Trigger
# ---------------------------------------------------------------------------

async def send_direct_message(
    db: AsyncSession,
    broadcaster: Broadcaster,
    sender_id: uuid.UUID,
    recipient_id: uuid.UUID,
    message: str,
) -> ChatMessage:
    """Persist a direct message and push it to both participants.

    Raises:
        EmptyMessageError: If the (truncated) body is blank.
        RecipientNotFoundError: If the recipient does not exist.
        PersistenceFailure: If the message could not be committed.
    """
    body = (message or "")[: settings.max_chat_message_length]
    if not body.strip():
        raise EmptyMessageError("Empty message")

    if await db.get(User, recipient_id) is None:
        raise RecipientNotFoundError(f"User {recipient_id} not found")

    chat_message = ChatMessage(
        from_user_id=sender_id,
        to_user_id=recipient_id,
        message=body,
    )
    db.add(chat_message)
    await commit_or_raise(db, "direct message")
    logger.info(
        "Direct message stored: id=%s from=%s to=%s len=%d",
        chat_message.id, sender_id, recipient_id, len(body),
    )

    result = await broadcaster.broadcast_chat_message(chat_message_snapshot(chat_message))
    logger.debug("Direct message %s pushed: %s", chat_message.id, describe(result))
    return chat_message
