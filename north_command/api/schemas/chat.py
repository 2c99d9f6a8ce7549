"""
Pydantic v2 schemas for the direct message API.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field

from .common import CamelModel, object_id_field


class SendDirectMessageRequest(CamelModel):
    """Request body for sending a direct message.

    Over-long bodies are truncated server-side rather than rejected.
    """

    message: str = Field(default="", description="Message text")


class DirectMessageOut(CamelModel):
    """A direct message as returned by REST (no ``self`` marker)."""

    id: uuid.UUID = object_id_field()
    from_user_id: uuid.UUID
    to_user_id: uuid.UUID
    message: str
    created_at: datetime


class OverseerOut(CamelModel):
    """Identity of the Overseer, used by agents to open a conversation."""

    id: uuid.UUID = object_id_field()
    username: str
