"""
Presence Registry
=================

In-process map of which users are currently connected and through which
socket connections.  One user may hold many connections (several tabs or
devices); the user counts as online while at least one remains.

The registry is local to a single server process.  Running several
instances behind a load balancer requires a shared store, which this
module does not attempt.
"""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Thread-safe ``user_id -> {connection_id}`` registry."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_user: dict[str, set[str]] = {}
        self._by_connection: dict[str, str] = {}

    def connect(self, user_id: str, connection_id: str) -> None:
        """Register ``connection_id`` for ``user_id``.  Idempotent."""
        user_id = str(user_id)
        with self._lock:
            previous = self._by_connection.get(connection_id)
            if previous is not None and previous != user_id:
                self._discard(previous, connection_id)
            self._by_user.setdefault(user_id, set()).add(connection_id)
            self._by_connection[connection_id] = user_id
        logger.debug("Presence connect: user=%s conn=%s", user_id, connection_id)

    def disconnect(self, connection_id: str) -> str | None:
        """Remove a connection.  Returns the owning user id, or None if unknown."""
        with self._lock:
            user_id = self._by_connection.pop(connection_id, None)
            if user_id is not None:
                self._discard(user_id, connection_id)
        if user_id is not None:
            logger.debug("Presence disconnect: user=%s conn=%s", user_id, connection_id)
        return user_id

    def is_online(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._by_user.get(str(user_id)))

    def connections_for(self, user_id: str) -> frozenset[str]:
        """Snapshot of the user's live connections (empty when offline)."""
        with self._lock:
            return frozenset(self._by_user.get(str(user_id), ()))

    def user_for(self, connection_id: str) -> str | None:
        with self._lock:
            return self._by_connection.get(connection_id)

    def online_users(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._by_user)

    def online_count(self) -> int:
        with self._lock:
            return len(self._by_user)

    def clear(self) -> None:
        with self._lock:
            self._by_user.clear()
            self._by_connection.clear()

    # Caller holds the lock.
    def _discard(self, user_id: str, connection_id: str) -> None:
        conns = self._by_user.get(user_id)
        if conns is None:
            return
        conns.discard(connection_id)
        if not conns:
            del self._by_user[user_id]


presence = PresenceRegistry()
