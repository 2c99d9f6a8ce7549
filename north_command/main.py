"""North Command API -- Main Application Entry Point

Creates the FastAPI application, configures CORS middleware, registers
all API route modules under the /api prefix, and mounts the Socket.IO
ASGI application for real-time WebSocket communication.

Run with::

    uvicorn north_command.main:app --host 0.0.0.0 --port 4000 --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from north_command.core.config import settings
from north_command.core.logging import configure_logging
from north_command.core.persistence import PersistenceFailure

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Startup:
      - Configure logging.
      - Import realtime handlers to register Socket.IO event listeners.
      - Optionally seed the demo Overseer and field agents.

    Shutdown:
      - Dispose of the database engine.
    """
    configure_logging(settings.log_level)

    # Importing handlers is sufficient to register all Socket.IO events
    from north_command.realtime import handlers  # noqa: F401

    from north_command.api.deps import async_session_factory, engine

    if settings.seed_demo_users:
        from north_command.bootstrap import ensure_demo_defaults

        async with async_session_factory() as db:
            await ensure_demo_defaults(db)

    logger.info("%s %s started", settings.app_name, settings.app_version)
    yield

    await engine.dispose()


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# CORS middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.client_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure) -> JSONResponse:
    """A write did not commit; nothing was broadcast."""
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get(f"{settings.api_prefix}/health", tags=["Health"])
async def health():
    """Lightweight health check for load balancers and readiness probes."""
    return {"ok": True, "version": settings.app_version}


# ---------------------------------------------------------------------------
# Register API route modules
# ---------------------------------------------------------------------------

from north_command.api.routes import admin, auth, chat, notifications, tasks  # noqa: E402

_prefix = settings.api_prefix

app.include_router(auth.router, prefix=_prefix)
app.include_router(tasks.router, prefix=_prefix)
app.include_router(notifications.router, prefix=_prefix)
app.include_router(chat.router, prefix=_prefix)
app.include_router(admin.router, prefix=_prefix)


# ---------------------------------------------------------------------------
# Mount Socket.IO ASGI application
# ---------------------------------------------------------------------------

from north_command.realtime.socketServer import socket_app  # noqa: E402

app.mount("/ws", socket_app)
