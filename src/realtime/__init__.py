"""
Campus Gigs Real-time Module
============================

WebSocket server, presence tracking and message fan-out.

Usage in FastAPI app startup::

    from src.realtime.socketServer import socket_app
    app.mount("/ws", socket_app)

The ``handlers`` sub-package registers all Socket.IO event handlers
as a side-effect of import, so simply importing it is sufficient to
activate all real-time event processing.
"""

from __future__ import annotations

from .presenceRegistry import PresenceRegistry, presence
from .socketServer import broadcast_all, emit_to_room, send_to_user, sio, socket_app

# Importing handlers registers the Socket.IO event listeners
from . import handlers  # noqa: F401

__all__ = [
    "sio",
    "socket_app",
    "presence",
    "PresenceRegistry",
    "emit_to_room",
    "send_to_user",
    "broadcast_all",
    "handlers",
]
