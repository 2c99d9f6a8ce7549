"""
Chat API Routes
===============

  GET  /api/chat/overseer        -- The Overseer's id and username
  GET  /api/chat/dm/{user_id}    -- Conversation with a user, oldest first
  POST /api/chat/dm/{user_id}    -- Send a direct message

Sending stores the message first and then pushes ``chat:msg`` to both
participants. The socket ``chat:send`` event is not accepted.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, HTTPException, status

from north_command.api.deps import BroadcasterDep, CurrentIdentity, DBSession
from north_command.api.schemas.chat import DirectMessageOut, OverseerOut, SendDirectMessageRequest
from north_command.services import chatService

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.get("/overseer", response_model=OverseerOut, summary="Get the Overseer")
async def get_overseer(db: DBSession, identity: CurrentIdentity) -> OverseerOut:
    overseer = await chatService.get_overseer(db)
    if overseer is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Overseer not found",
        )
    return OverseerOut.model_validate(overseer)


@router.get(
    "/dm/{user_id}",
    response_model=list[DirectMessageOut],
    summary="Direct message history",
)
async def list_direct_messages(
    db: DBSession,
    identity: CurrentIdentity,
    user_id: uuid.UUID,
) -> list[DirectMessageOut]:
    messages = await chatService.list_direct_messages(db, uuid.UUID(identity.identity_id), user_id)
    return [DirectMessageOut.model_validate(m) for m in messages]


@router.post(
    "/dm/{user_id}",
    response_model=DirectMessageOut,
    status_code=status.HTTP_201_CREATED,
    summary="Send a direct message",
)
async def send_direct_message(
    db: DBSession,
    broadcaster: BroadcasterDep,
    identity: CurrentIdentity,
    user_id: uuid.UUID,
    body: SendDirectMessageRequest,
) -> DirectMessageOut:
    try:
        message = await chatService.send_direct_message(
            db,
            broadcaster,
            uuid.UUID(identity.identity_id),
            user_id,
            body.message,
        )
    except chatService.EmptyMessageError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        )
    except chatService.RecipientNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        )
    return DirectMessageOut.model_validate(message)
