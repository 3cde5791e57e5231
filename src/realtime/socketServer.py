"""
WebSocket Server
================

Socket.IO server for Campus Gigs.  Delivers chat messages, typing
indicators, message notifications and system announcements to browsers.

Architecture:
  - python-socketio AsyncServer mounted as an ASGI app on FastAPI
  - Optional Redis client manager (``WS_USE_REDIS_MANAGER``) so emits
    reach clients attached to other server processes
  - JWT authentication on connect; the token's subject is the user id
  - Room per conversation, named by the conversation id

Connection lifecycle:
  1. Client connects with ``auth: { token: "<jwt>" }``
  2. Server validates the JWT and records the connection in the
     presence registry
  3. Client joins conversation rooms via ``join_conversation``
  4. On disconnect the connection is dropped from the presence registry
"""

from __future__ import annotations

import logging
from typing import Any

import jwt
import socketio

from src.core.config import settings
from src.realtime.presenceRegistry import presence

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Socket.IO server instance
# ---------------------------------------------------------------------------

client_manager = None
if settings.ws_use_redis_manager:
    client_manager = socketio.AsyncRedisManager(settings.redis_url, write_only=False)

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.ws_cors_allowed_origins,
    client_manager=client_manager,
    logger=False,
    engineio_logger=False,
    ping_timeout=settings.ws_ping_timeout,
    ping_interval=settings.ws_ping_interval,
    max_http_buffer_size=1_000_000,  # 1 MB
)


# ---------------------------------------------------------------------------
# JWT authentication helper
# ---------------------------------------------------------------------------

def _authenticate_token(token: str | None) -> dict[str, Any] | None:
    """Validate a JWT and return the decoded payload, or None on failure."""
    if not token:
        return None
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        logger.warning("JWT token expired")
        return None
    except jwt.InvalidTokenError as exc:
        logger.warning("Invalid JWT token: %s", exc)
        return None

    if payload.get("type") != "access" or "sub" not in payload:
        logger.warning("JWT missing required claims (sub, type=access)")
        return None
    return payload


# ---------------------------------------------------------------------------
# Connect / disconnect
# ---------------------------------------------------------------------------

@sio.event
async def connect(sid: str, environ: dict[str, Any], auth: dict[str, Any] | None = None) -> bool:
    """Authenticate the connection and register presence.

    Returns ``False`` to reject connections without a valid token.
    """
    token = (auth or {}).get("token")
    payload = _authenticate_token(token)
    if payload is None:
        logger.info("Connection rejected for sid=%s -- authentication failed", sid)
        return False

    user_id = str(payload["sub"])
    await sio.save_session(sid, {"user_id": user_id, "role": payload.get("role", "user")})
    presence.connect(user_id, sid)
    logger.info("Connected: sid=%s user_id=%s", sid, user_id)
    return True


@sio.event
async def disconnect(sid: str, *args: Any) -> None:
    user_id = presence.disconnect(sid)
    if user_id:
        logger.info("Disconnected: sid=%s user_id=%s", sid, user_id)
    else:
        logger.info("Disconnected: sid=%s (no registered user)", sid)


async def get_session_user(sid: str) -> str | None:
    """User id bound to ``sid`` at connect time."""
    user_id = presence.user_for(sid)
    if user_id is not None:
        return user_id
    try:
        session = await sio.get_session(sid)
    except KeyError:
        return None
    return session.get("user_id")


# ---------------------------------------------------------------------------
# High-level emit helpers (used by handlers and services)
# ---------------------------------------------------------------------------

async def emit_to_room(
    room: str,
    event: str,
    data: dict[str, Any],
    *,
    skip_sid: str | None = None,
) -> None:
    await sio.emit(event, data, room=room, skip_sid=skip_sid)
    logger.debug("Emitted %s to room=%s", event, room)


async def send_to_user(user_id: str, event: str, data: dict[str, Any]) -> int:
    """Emit to every live connection of ``user_id``.  Returns connections reached."""
    sids = presence.connections_for(str(user_id))
    for sid in sids:
        await sio.emit(event, data, to=sid)
    if sids:
        logger.debug("Sent %s to user=%s via %d sids", event, user_id, len(sids))
    return len(sids)


async def broadcast_all(event: str, data: dict[str, Any]) -> None:
    """Emit to every connected client."""
    await sio.emit(event, data)
    logger.info("Broadcast %s to all clients (%d users online)", event, presence.online_count())


# ---------------------------------------------------------------------------
# ASGI app for mounting onto FastAPI
# ---------------------------------------------------------------------------

socket_app = socketio.ASGIApp(
    socketio_server=sio,
    socketio_path="/ws/socket.io",
)
