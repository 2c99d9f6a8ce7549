"""
Shared pytest fixtures for North Command tests.

Provides a mock Socket.IO transport, a fresh room registry, verified
identities for both roles, and a helper that signs credentials with the
application's JWT settings.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest

from north_command.core.config import settings
from north_command.models.user import UserRole
from north_command.realtime.auth import Identity
from north_command.realtime.broadcaster import Broadcaster
from north_command.realtime.registry import RoomRegistry


# ---------------------------------------------------------------------------
# Stable ids
# ---------------------------------------------------------------------------

OVERSEER_ID = "0a0a0a0a-0000-4000-8000-000000000001"
AGENT_42_ID = "0a0a0a0a-0000-4000-8000-000000000042"
AGENT_7_ID = "0a0a0a0a-0000-4000-8000-000000000007"
AGENT_9_ID = "0a0a0a0a-0000-4000-8000-000000000009"


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


def make_token(
    sub: Any,
    role: Any = UserRole.FIELD_AGENT.value,
    *,
    expires_in: timedelta = timedelta(hours=1),
    secret: str | None = None,
    **extra: Any,
) -> str:
    """Sign a credential the way the auth service does."""
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {"sub": str(sub), "iat": now, "exp": now + expires_in, **extra}
    if role is not None:
        payload["role"] = role
    return jwt.encode(payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@pytest.fixture
def overseer() -> Identity:
    return Identity(identity_id=OVERSEER_ID, role=UserRole.OVERSEER)


@pytest.fixture
def agent42() -> Identity:
    return Identity(identity_id=AGENT_42_ID, role=UserRole.FIELD_AGENT)


@pytest.fixture
def agent7() -> Identity:
    return Identity(identity_id=AGENT_7_ID, role=UserRole.FIELD_AGENT)


@pytest.fixture
def agent9() -> Identity:
    return Identity(identity_id=AGENT_9_ID, role=UserRole.FIELD_AGENT)


# ---------------------------------------------------------------------------
# Realtime plumbing
# ---------------------------------------------------------------------------


@pytest.fixture
def transport() -> MagicMock:
    """Mock of ``socketio.AsyncServer`` recording every ``emit``."""
    server = MagicMock()
    server.emit = AsyncMock()
    return server


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def broadcaster(transport: MagicMock, registry: RoomRegistry) -> Broadcaster:
    """Broadcaster with no snapshot loader; tests pass snapshots explicitly."""
    return Broadcaster(transport, registry)


def emissions(transport: MagicMock) -> list[tuple[str, dict, str]]:
    """Flatten recorded emits into ``(event, payload, sid)`` tuples."""
    out = []
    for call in transport.emit.await_args_list:
        event, payload = call.args[0], call.args[1]
        out.append((event, payload, call.kwargs["to"]))
    return out


def emissions_to(transport: MagicMock, sid: str) -> list[tuple[str, dict]]:
    return [(event, payload) for event, payload, to in emissions(transport) if to == sid]


def new_id() -> str:
    return str(uuid.uuid4())
