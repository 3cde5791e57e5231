"""
Chat Socket Handler
===================

Room membership and typing indicators for conversations.  Messages are
sent over REST (``POST /api/chat/...``); this handler only manages who
receives the resulting broadcasts.

Events received FROM clients:
  join_conversation   "<conversationId>" | { conversationId }
  join_chat           alias of join_conversation
  leave_conversation  "<conversationId>" | { conversationId }
  typing              { conversationId, ... }   relayed verbatim
  stop_typing         { conversationId, ... }   relayed verbatim

Events emitted TO clients:
  typing / stop_typing to the rest of the room
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from src.api.deps import async_session_factory
from src.core.exceptions import NotFoundError
from src.services import chatService

from ..socketServer import emit_to_room, get_session_user, sio

logger = logging.getLogger(__name__)


def _conversation_id(data: Any) -> str | None:
    if isinstance(data, str):
        return data or None
    if isinstance(data, dict):
        value = data.get("conversationId") or data.get("conversation_id")
        return str(value) if value else None
    return None


async def _is_participant(conversation_id: str, user_id: str) -> bool:
    try:
        conv_uuid = uuid.UUID(conversation_id)
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        return False
    async with async_session_factory() as db:
        try:
            await chatService.require_participant(db, conv_uuid, user_uuid)
        except NotFoundError:
            return False
    return True


# ---------------------------------------------------------------------------
# Room management
# ---------------------------------------------------------------------------

@sio.on("join_conversation")
async def handle_join_conversation(sid: str, data: Any) -> dict[str, Any]:
    """Join the room of a conversation the user participates in.  Idempotent."""
    user_id = await get_session_user(sid)
    if user_id is None:
        return {"ok": False, "error": "Not authenticated"}

    conversation_id = _conversation_id(data)
    if not conversation_id:
        return {"ok": False, "error": "conversationId is required"}

    if not await _is_participant(conversation_id, user_id):
        logger.info("sid=%s denied join of conversation %s", sid, conversation_id)
        return {"ok": False, "error": "Conversation not found"}

    await sio.enter_room(sid, conversation_id)
    logger.info("sid=%s user=%s joined room %s", sid, user_id, conversation_id)
    return {"ok": True, "room": conversation_id}


@sio.on("join_chat")
async def handle_join_chat(sid: str, data: Any) -> dict[str, Any]:
    return await handle_join_conversation(sid, data)


@sio.on("leave_conversation")
async def handle_leave_conversation(sid: str, data: Any) -> dict[str, Any]:
    conversation_id = _conversation_id(data)
    if not conversation_id:
        return {"ok": False, "error": "conversationId is required"}
    await sio.leave_room(sid, conversation_id)
    logger.info("sid=%s left room %s", sid, conversation_id)
    return {"ok": True, "room": conversation_id}


# ---------------------------------------------------------------------------
# Typing indicators (not persisted)
# ---------------------------------------------------------------------------

async def _relay(event: str, sid: str, data: Any) -> dict[str, Any]:
    conversation_id = _conversation_id(data)
    if not conversation_id:
        return {"ok": False, "error": "conversationId is required"}
    if conversation_id not in sio.rooms(sid):
        return {"ok": False, "error": "Join the conversation first"}
    await emit_to_room(conversation_id, event, data, skip_sid=sid)
    return {"ok": True}


@sio.on("typing")
async def handle_typing(sid: str, data: Any) -> dict[str, Any]:
    return await _relay("typing", sid, data)


@sio.on("stop_typing")
async def handle_stop_typing(sid: str, data: Any) -> dict[str, Any]:
    return await _relay("stop_typing", sid, data)
