"""
Pydantic v2 schemas for the Chat API.

Request/response schemas for the REST chat endpoints.  ``MessageOut`` is
also the payload of the ``receive_message`` socket event, so REST and
real-time clients see the same shape, including the sender's
``clientMessageId``.

A send request names its conversation through a tagged target:

  {"kind": "conversation", "conversationId": ...}
  {"kind": "direct", "recipientId": ...}
  {"kind": "job", "jobId": ...}

The target is resolved once, at the route, into a conversation.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import Field

from src.api.schemas.common import CamelModel
from src.models.chat import AttachmentKind
from src.services.chatService import (
    AttachmentDTO,
    ConversationDTO,
    ConversationTarget,
    DirectTarget,
    JobTarget,
    MessageDTO,
    MAX_CLIENT_MESSAGE_ID_LENGTH,
    MAX_MESSAGE_LENGTH,
)


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------

class ParticipantOut(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    profile_photo: str = ""
    role: str


class JobContextOut(CamelModel):
    id: uuid.UUID
    title: str
    status: str


class AttachmentIn(CamelModel):
    """Attachment reference returned by POST /chat/upload."""

    path: str = Field(min_length=1, max_length=500)
    type: AttachmentKind = AttachmentKind.IMAGE
    original_name: Optional[str] = Field(default=None, max_length=255)

    def to_dto(self) -> AttachmentDTO:
        return AttachmentDTO(
            path=self.path,
            type=self.type.value,
            original_name=self.original_name,
        )


class AttachmentOut(CamelModel):
    path: str
    type: str
    original_name: Optional[str] = None


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

class MessageOut(CamelModel):
    """A stored chat message."""

    id: uuid.UUID
    conversation_id: uuid.UUID
    sender: Optional[ParticipantOut] = None
    content: str
    attachment: Optional[AttachmentOut] = None
    read_by: list[uuid.UUID] = Field(default_factory=list)
    client_message_id: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_dto(cls, dto: MessageDTO) -> "MessageOut":
        return cls.model_validate(dto)

    def to_payload(self) -> dict:
        """JSON-ready dict with camelCase keys for socket emission."""
        return self.model_dump(mode="json", by_alias=True)


class SendMessageRequest(CamelModel):
    """Body for POST /chat/{conversation_id}/messages."""

    content: str = Field(default="", max_length=MAX_MESSAGE_LENGTH)
    attachment: Optional[AttachmentIn] = None
    client_message_id: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=MAX_CLIENT_MESSAGE_ID_LENGTH,
        description="Sender-generated idempotency key, echoed back verbatim",
    )


class ConversationTargetIn(CamelModel):
    kind: Literal["conversation"]
    conversation_id: uuid.UUID

    def to_target(self) -> ConversationTarget:
        return ConversationTarget(conversation_id=self.conversation_id)


class DirectTargetIn(CamelModel):
    kind: Literal["direct"]
    recipient_id: uuid.UUID

    def to_target(self) -> DirectTarget:
        return DirectTarget(recipient_id=self.recipient_id)


class JobTargetIn(CamelModel):
    kind: Literal["job"]
    job_id: uuid.UUID

    def to_target(self) -> JobTarget:
        return JobTarget(job_id=self.job_id)


MessageTargetIn = Annotated[
    Union[ConversationTargetIn, DirectTargetIn, JobTargetIn],
    Field(discriminator="kind"),
]


class SendToTargetRequest(SendMessageRequest):
    """Body for POST /chat/messages: a message plus where it goes."""

    target: MessageTargetIn


class MessageResponse(CamelModel):
    data: MessageOut


class MessageListResponse(CamelModel):
    data: list[MessageOut]


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------

class StartConversationRequest(CamelModel):
    """Body for POST /chat/start.  ``jobId`` wins over ``recipientId``."""

    recipient_id: Optional[uuid.UUID] = None
    job_id: Optional[uuid.UUID] = None


class ConversationOut(CamelModel):
    id: uuid.UUID
    type: str
    participants: list[ParticipantOut]
    context: Optional[JobContextOut] = None
    last_message_id: Optional[uuid.UUID] = None
    last_message_content: str = ""
    unread_count: int = 0
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_dto(cls, dto: ConversationDTO) -> "ConversationOut":
        return cls.model_validate(dto)


class ConversationResponse(CamelModel):
    data: ConversationOut


class ConversationListResponse(CamelModel):
    data: list[ConversationOut]


# ---------------------------------------------------------------------------
# Upload / read receipts
# ---------------------------------------------------------------------------

class UploadData(CamelModel):
    path: str
    type: AttachmentKind
    original_name: str


class UploadResponse(CamelModel):
    data: UploadData


class MarkReadData(CamelModel):
    marked: int = Field(ge=0)


class MarkReadResponse(CamelModel):
    data: MarkReadData
    message: str = "Messages marked as read"
