"""
North Command Real-time Module
==============================

Socket.IO server, room registry and event broadcaster.

Usage in FastAPI app startup::

    from north_command.realtime import socket_app
    app.mount("/ws", socket_app)

Domain code never emits directly; it calls the shared ``broadcaster``
after its write has committed.

The ``handlers`` sub-package registers all Socket.IO event handlers
as a side-effect of import, so simply importing it is sufficient to
activate all real-time event processing.
"""

from __future__ import annotations

from .broadcaster import BroadcastDeliveryFailure, BroadcastResult, Broadcaster
from .socketServer import broadcaster, registry, sio, socket_app

# Importing handlers registers the Socket.IO event listeners
from . import handlers  # noqa: F401

__all__ = [
    "sio",
    "socket_app",
    "registry",
    "broadcaster",
    "Broadcaster",
    "BroadcastResult",
    "BroadcastDeliveryFailure",
    "handlers",
]
