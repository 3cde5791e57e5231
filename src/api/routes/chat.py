"""
Chat API Routes
===============

REST endpoints for conversations and messages.  These complement the
Socket.IO handlers in ``src/realtime/handlers/chatHandler.py``: a message
is always stored through REST, then fanned out over the socket.

Routes:
  POST   /api/chat/upload                          -- Upload one attachment
  GET    /api/chat/conversations                   -- My conversations, recent first
  POST   /api/chat/start                           -- Find or create a conversation
  POST   /api/chat/messages                        -- Send to a tagged target
  GET    /api/chat/{conversation_id}/messages      -- Full history, oldest first
  POST   /api/chat/{conversation_id}/messages      -- Send a message
  PATCH  /api/chat/{conversation_id}/read          -- Mark messages read

All endpoints require a valid Bearer token.  Conversations the user does
not belong to answer 404.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, File, Response, UploadFile, status

from src.api.deps import CurrentUser, DBSession
from src.api.schemas.chat import (
    ConversationListResponse,
    ConversationOut,
    ConversationResponse,
    MarkReadData,
    MarkReadResponse,
    MessageListResponse,
    MessageOut,
    MessageResponse,
    SendMessageRequest,
    SendToTargetRequest,
    StartConversationRequest,
    UploadData,
    UploadResponse,
)
from src.realtime.fanout import fan_out
from src.realtime.socketServer import emit_to_room
from src.services import chatService, file_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


async def _store_and_fan_out(
    db,
    conversation_id: uuid.UUID,
    sender_id: uuid.UUID,
    body: SendMessageRequest,
    response: Response,
) -> MessageOut:
    """Store a message and push it out.  A replayed clientMessageId answers 200."""
    post = await chatService.post_message(
        db,
        conversation_id,
        sender_id,
        body.content,
        attachment=body.attachment.to_dto() if body.attachment else None,
        client_message_id=body.client_message_id,
    )
    out = MessageOut.from_dto(post.message)

    # Replays of an already stored message are not fanned out again
    if post.created:
        await db.commit()
        await fan_out(post, out.to_payload())
    else:
        response.status_code = status.HTTP_200_OK
    return out


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a chat attachment",
    description=(
        "Stores a single file and returns its server-relative path, to be "
        "sent as a message attachment. Files are served under /uploads."
    ),
)
async def upload(
    current_user: CurrentUser,
    file: UploadFile = File(...),
) -> UploadResponse:
    stored = await file_service.save_upload_file(file)
    return UploadResponse(
        data=UploadData(
            path=stored.path,
            type=stored.kind,
            original_name=stored.original_name,
        )
    )


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------

@router.get(
    "/conversations",
    response_model=ConversationListResponse,
    summary="List my conversations",
)
async def list_conversations(
    db: DBSession,
    current_user: CurrentUser,
) -> ConversationListResponse:
    conversations = await chatService.list_conversations(db, current_user.id)
    return ConversationListResponse(
        data=[ConversationOut.from_dto(c) for c in conversations]
    )


@router.post(
    "/start",
    response_model=ConversationResponse,
    summary="Find or create a conversation",
    description=(
        "With jobId: the conversation about that job (participants come from "
        "the job). Otherwise the direct conversation with recipientId. "
        "Repeated calls return the same conversation."
    ),
)
async def start_conversation(
    db: DBSession,
    current_user: CurrentUser,
    body: StartConversationRequest,
) -> ConversationResponse:
    conv = await chatService.resolve_conversation(
        db,
        current_user.id,
        recipient_id=body.recipient_id,
        job_id=body.job_id,
    )
    return ConversationResponse(
        data=ConversationOut.from_dto(chatService.to_conversation_dto(conv, current_user.id))
    )


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@router.post(
    "/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message to a conversation, a user or a job",
)
async def send_to_target(
    db: DBSession,
    current_user: CurrentUser,
    body: SendToTargetRequest,
    response: Response,
) -> MessageResponse:
    conv = await chatService.resolve_target(db, current_user.id, body.target.to_target())
    out = await _store_and_fan_out(db, conv.id, current_user.id, body, response)
    return MessageResponse(data=out)


@router.get(
    "/{conversation_id}/messages",
    response_model=MessageListResponse,
    summary="Conversation history",
)
async def get_history(
    db: DBSession,
    current_user: CurrentUser,
    conversation_id: uuid.UUID,
) -> MessageListResponse:
    messages = await chatService.get_history(db, conversation_id, current_user.id)
    return MessageListResponse(data=[MessageOut.from_dto(m) for m in messages])


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
    description=(
        "Stores the message, updates the conversation preview and pushes it "
        "to the conversation room. Sending again with the same "
        "clientMessageId returns the stored message with 200 and no duplicate."
    ),
)
async def send_message(
    db: DBSession,
    current_user: CurrentUser,
    conversation_id: uuid.UUID,
    body: SendMessageRequest,
    response: Response,
) -> MessageResponse:
    out = await _store_and_fan_out(db, conversation_id, current_user.id, body, response)
    return MessageResponse(data=out)


@router.patch(
    "/{conversation_id}/read",
    response_model=MarkReadResponse,
    summary="Mark messages as read",
)
async def mark_read(
    db: DBSession,
    current_user: CurrentUser,
    conversation_id: uuid.UUID,
) -> MarkReadResponse:
    marked = await chatService.mark_read(db, conversation_id, current_user.id)

    if marked > 0:
        await db.commit()
        try:
            await emit_to_room(
                str(conversation_id),
                "messages_read",
                {"conversationId": str(conversation_id), "readBy": str(current_user.id)},
            )
        except Exception:
            logger.warning(
                "Failed to broadcast messages_read for conversation=%s",
                conversation_id,
                exc_info=True,
            )

    return MarkReadResponse(data=MarkReadData(marked=marked))
