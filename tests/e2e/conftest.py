"""
E2E test fixtures for North Command.

Provides:
- A per-test in-memory SQLite database (aiosqlite, StaticPool) with the
  full schema
- Seeded users: the Overseer and three field agents
- An in-process FastAPI test app with every route registered, ``get_db``
  bound to the test database and ``get_broadcaster`` bound to a broadcaster
  whose transport is a mock
- Connected realtime sessions for each user, so tests can assert exactly
  which sid received which event
- httpx AsyncClient wired via ASGI transport (no network needed)
"""

from __future__ import annotations

import uuid
from typing import Any, AsyncGenerator
from unittest.mock import MagicMock

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from north_command.models import Base, User, UserRole
from north_command.realtime.auth import Identity
from north_command.realtime.broadcaster import Broadcaster
from north_command.realtime.registry import RoomRegistry
from north_command.realtime.snapshots import make_task_snapshot_loader
from north_command.services.auth_service import create_access_token, hash_password
from tests.conftest import AGENT_7_ID, AGENT_9_ID, AGENT_42_ID, OVERSEER_ID

# ---------------------------------------------------------------------------
# Test users (stable across tests so cross-references work)
# ---------------------------------------------------------------------------

PASSWORD = "north-pole"

USERS: dict[str, tuple[str, UserRole]] = {
    OVERSEER_ID: ("santa", UserRole.OVERSEER),
    AGENT_42_ID: ("elf42", UserRole.FIELD_AGENT),
    AGENT_7_ID: ("elf07", UserRole.FIELD_AGENT),
    AGENT_9_ID: ("elf09", UserRole.FIELD_AGENT),
}

# sid of the single connected session opened for each user
SIDS: dict[str, str] = {
    OVERSEER_ID: "sid-santa",
    AGENT_42_ID: "sid-elf42",
    AGENT_7_ID: "sid-elf07",
    AGENT_9_ID: "sid-elf09",
}


def auth_header(user_id: str) -> dict[str, str]:
    """Authorization header for one of the seeded users."""
    _, role = USERS[user_id]
    return {"Authorization": f"Bearer {create_access_token(uuid.UUID(user_id), role)}"}


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test; one shared connection."""
    test_engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # SQLite does not enforce foreign keys by default
    @event.listens_for(test_engine.sync_engine, "connect")
    def _enable_fk(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    password_hash = hash_password(PASSWORD)
    async with factory() as db:
        db.add_all(
            User(id=uuid.UUID(user_id), username=username, password_hash=password_hash, role=role)
            for user_id, (username, role) in USERS.items()
        )
        await db.commit()
    return factory


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A separate session for assertions against committed state."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Realtime doubles
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def connected_registry(registry: RoomRegistry) -> RoomRegistry:
    """Registry with one live session per seeded user."""
    for user_id, (_, role) in USERS.items():
        await registry.join(SIDS[user_id], Identity(identity_id=user_id, role=role))
    return registry


@pytest_asyncio.fixture
async def live_broadcaster(
    transport: MagicMock,
    connected_registry: RoomRegistry,
    session_factory,
) -> Broadcaster:
    return Broadcaster(
        transport,
        connected_registry,
        snapshot_loader=make_task_snapshot_loader(session_factory),
    )


def received(transport: MagicMock, user_id: str, event_name: str | None = None) -> list[dict[str, Any]]:
    """Payloads emitted to the seeded user's session, optionally filtered by event."""
    sid = SIDS[user_id]
    return [
        call.args[1]
        for call in transport.emit.await_args_list
        if call.kwargs.get("to") == sid and (event_name is None or call.args[0] == event_name)
    ]


# ---------------------------------------------------------------------------
# FastAPI test application
# ---------------------------------------------------------------------------


def _create_test_app(session_factory, broadcaster: Broadcaster):
    """Build a FastAPI app with all routes registered and the DB and
    broadcaster dependencies overridden."""
    from fastapi import FastAPI

    from north_command.api.deps import get_broadcaster, get_db
    from north_command.api.routes.admin import router as admin_router
    from north_command.api.routes.auth import router as auth_router
    from north_command.api.routes.chat import router as chat_router
    from north_command.api.routes.notifications import router as notifications_router
    from north_command.api.routes.tasks import router as tasks_router
    from north_command.core.persistence import PersistenceFailure
    from north_command.main import persistence_failure_handler

    app = FastAPI(title="North Command Test")

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    app.add_exception_handler(PersistenceFailure, persistence_failure_handler)

    app.include_router(auth_router, prefix="/api")
    app.include_router(tasks_router, prefix="/api")
    app.include_router(notifications_router, prefix="/api")
    app.include_router(chat_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    return app


@pytest_asyncio.fixture
async def client(session_factory, live_broadcaster) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the test app via ASGI transport."""
    app = _create_test_app(session_factory, live_broadcaster)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
