"""
Campus Gigs Real-time Handlers
==============================

Importing this module registers all event handlers with the shared
Socket.IO server instance.
"""

from __future__ import annotations

from . import chatHandler

__all__ = [
    "chatHandler",
]
