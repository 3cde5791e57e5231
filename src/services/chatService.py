"""
Chat Service
============

Business logic for conversations and messages:

  - Conversation resolution: find-or-create the single DIRECT conversation
    for a user pair, or the single JOB conversation for a job.
  - Message store: append a message, update the conversation preview and
    the unread counters, read history, mark messages read.

Creation of conversations and messages goes through an atomic
insert-if-absent on the relevant unique key, so duplicate "start" calls
and client retries that race each other always converge on one row.

Business rules:
  - Only participants can read or post in a conversation.  Anybody else
    gets the same "not found" answer as for a missing conversation.
  - JOB conversation participants are derived from the job: always the
    poster and the accepted worker.  Nobody can open the JOB conversation
    of an unassigned job, and reassigning a job replaces the worker.
  - A message needs text or an attachment; text is capped at 5000 chars.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import delete, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from src.models.base import utcnow
from src.models.chat import (
    AttachmentKind,
    Conversation,
    ConversationParticipant,
    ConversationType,
    Message,
    MessageRead,
    direct_key_for,
)
from src.models.job import Job
from src.models.user import User

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_MESSAGE_LENGTH: int = 5000
MAX_CLIENT_MESSAGE_ID_LENGTH: int = 64

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


# ---------------------------------------------------------------------------
# Message targets (how a send request addresses its conversation)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConversationTarget:
    conversation_id: uuid.UUID


@dataclass(frozen=True)
class DirectTarget:
    recipient_id: uuid.UUID


@dataclass(frozen=True)
class JobTarget:
    job_id: uuid.UUID


MessageTarget = Union[ConversationTarget, DirectTarget, JobTarget]


# ---------------------------------------------------------------------------
# Data transfer objects
# ---------------------------------------------------------------------------

@dataclass
class ParticipantDTO:
    id: uuid.UUID
    name: str
    email: str
    profile_photo: str
    role: str


@dataclass
class JobContextDTO:
    id: uuid.UUID
    title: str
    status: str


@dataclass
class AttachmentDTO:
    path: str
    type: str
    original_name: Optional[str]


@dataclass
class MessageDTO:
    """Flat representation of a chat message for API and socket payloads."""

    id: uuid.UUID
    conversation_id: uuid.UUID
    sender: Optional[ParticipantDTO]
    content: str
    attachment: Optional[AttachmentDTO]
    read_by: list[uuid.UUID]
    client_message_id: Optional[str]
    created_at: datetime

    @property
    def sender_id(self) -> Optional[uuid.UUID]:
        return self.sender.id if self.sender else None


@dataclass
class ConversationDTO:
    id: uuid.UUID
    type: str
    participants: list[ParticipantDTO]
    context: Optional[JobContextDTO]
    last_message_id: Optional[uuid.UUID]
    last_message_content: str
    unread_count: int
    created_at: datetime
    updated_at: datetime

    @property
    def participant_ids(self) -> list[uuid.UUID]:
        return [p.id for p in self.participants]


@dataclass
class PostResult:
    """Outcome of ``post_message``.  ``created`` is False for a replayed retry."""

    message: MessageDTO
    conversation: ConversationDTO
    created: bool
    recipients: list[ParticipantDTO] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------

def _participant_dto(user: User) -> ParticipantDTO:
    return ParticipantDTO(
        id=user.id,
        name=user.name,
        email=user.email,
        profile_photo=user.profile_photo or "",
        role=user.role.value,
    )


def to_message_dto(msg: Message) -> MessageDTO:
    attachment = None
    if msg.attachment_path:
        attachment = AttachmentDTO(
            path=msg.attachment_path,
            type=(msg.attachment_kind or AttachmentKind.IMAGE).value,
            original_name=msg.attachment_name,
        )
    return MessageDTO(
        id=msg.id,
        conversation_id=msg.conversation_id,
        sender=_participant_dto(msg.sender) if msg.sender is not None else None,
        content=msg.content,
        attachment=attachment,
        read_by=list(msg.read_by),
        client_message_id=msg.client_message_id,
        created_at=msg.created_at,
    )


def to_conversation_dto(conv: Conversation, viewer_id: uuid.UUID | None = None) -> ConversationDTO:
    unread = 0
    for p in conv.participants:
        if p.user_id == viewer_id:
            unread = p.unread_count
    context = None
    if conv.job is not None:
        context = JobContextDTO(
            id=conv.job.id,
            title=conv.job.title,
            status=conv.job.status.value,
        )
    return ConversationDTO(
        id=conv.id,
        type=conv.type.value,
        participants=[_participant_dto(p.user) for p in conv.participants],
        context=context,
        last_message_id=conv.last_message_id,
        last_message_content=conv.last_message_content,
        unread_count=unread,
        created_at=conv.created_at,
        updated_at=conv.updated_at,
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _insert_ignoring_conflicts(db: AsyncSession, model, index_elements: list[str]):
    """Build ``INSERT ... ON CONFLICT DO NOTHING`` for the session's dialect."""
    dialect = db.get_bind().dialect.name
    try:
        insert = _DIALECT_INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"Unsupported database dialect: {dialect}") from None
    return insert(model).on_conflict_do_nothing(index_elements=index_elements)


async def _load_conversation(
    db: AsyncSession,
    *,
    conversation_id: uuid.UUID | None = None,
    direct_key: str | None = None,
    context_id: uuid.UUID | None = None,
) -> Optional[Conversation]:
    stmt = select(Conversation).execution_options(populate_existing=True)
    if conversation_id is not None:
        stmt = stmt.where(Conversation.id == conversation_id)
    elif direct_key is not None:
        stmt = stmt.where(Conversation.direct_key == direct_key)
    else:
        stmt = stmt.where(Conversation.context_id == context_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _create_if_absent(
    db: AsyncSession,
    *,
    values: dict,
    key_column: str,
    participant_ids: list[uuid.UUID],
) -> bool:
    """Insert a conversation unless one with the same key exists.

    Participant rows are written only by the call that created the row.
    Returns True when this call created it.
    """
    conversation_id = uuid.uuid4()
    now = utcnow()
    stmt = _insert_ignoring_conflicts(db, Conversation, [key_column]).values(
        id=conversation_id,
        last_message_content="",
        created_at=now,
        updated_at=now,
        **values,
    ).returning(Conversation.id)
    result = await db.execute(stmt)
    if result.scalar_one_or_none() is None:
        return False

    for user_id in participant_ids:
        db.add(ConversationParticipant(
            conversation_id=conversation_id,
            user_id=user_id,
            unread_count=0,
        ))
    await db.flush()
    logger.info(
        "Conversation created: id=%s type=%s participants=%s",
        conversation_id, values["type"].value, participant_ids,
    )
    return True


async def require_participant(
    db: AsyncSession,
    conversation_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Conversation:
    """Return the conversation if ``user_id`` belongs to it.

    Raises:
        NotFoundError: If the conversation is missing or the user is not a
            participant (the two cases are indistinguishable to the caller).
    """
    conv = await _load_conversation(db, conversation_id=conversation_id)
    if conv is None or not conv.has_participant(user_id):
        raise NotFoundError("Conversation not found")
    return conv


# ---------------------------------------------------------------------------
# Conversation resolution
# ---------------------------------------------------------------------------

async def resolve_direct(
    db: AsyncSession,
    requester_id: uuid.UUID,
    recipient_id: uuid.UUID,
) -> Conversation:
    """Find or create the DIRECT conversation between two users."""
    if requester_id == recipient_id:
        raise ValidationError("You cannot start a conversation with yourself")

    key = direct_key_for(requester_id, recipient_id)
    conv = await _load_conversation(db, direct_key=key)
    if conv is not None:
        return conv

    recipient = await db.get(User, recipient_id)
    if recipient is None or not recipient.is_active:
        raise NotFoundError("User not found")

    await _create_if_absent(
        db,
        values={"type": ConversationType.DIRECT, "direct_key": key},
        key_column="direct_key",
        participant_ids=[requester_id, recipient_id],
    )
    conv = await _load_conversation(db, direct_key=key)
    if conv is None:
        raise RuntimeError(f"Conversation {key} vanished after insert")
    return conv


def _job_participants(job: Job) -> list[uuid.UUID]:
    """Participants of a job's conversation: the poster and the assigned worker."""
    if job.accepted_by_id is None:
        raise ConflictError("Nobody has accepted this job yet")
    return [job.posted_by_id, job.accepted_by_id]


async def sync_job_participants(db: AsyncSession, job: Job) -> None:
    """Make the job's conversation membership match the job.

    Called whenever the worker changes.  Anyone who is neither the poster
    nor the current worker loses access to the conversation; a newly
    assigned worker is added.
    """
    conv_id = (
        await db.execute(select(Conversation.id).where(Conversation.context_id == job.id))
    ).scalar_one_or_none()
    if conv_id is None:
        return

    members = [job.posted_by_id]
    if job.accepted_by_id is not None:
        members.append(job.accepted_by_id)

    removed = await db.execute(
        delete(ConversationParticipant)
        .where(
            ConversationParticipant.conversation_id == conv_id,
            ConversationParticipant.user_id.notin_(members),
        )
        .execution_options(synchronize_session=False)
    )
    if job.accepted_by_id is not None:
        stmt = _insert_ignoring_conflicts(
            db, ConversationParticipant, ["conversation_id", "user_id"]
        ).values(conversation_id=conv_id, user_id=job.accepted_by_id, unread_count=0)
        await db.execute(stmt)
    logger.info(
        "Job conversation %s synced: members=%s removed=%d",
        conv_id, members, removed.rowcount,
    )


async def resolve_job(
    db: AsyncSession,
    requester_id: uuid.UUID,
    job_id: uuid.UUID,
) -> Conversation:
    """Find or create the JOB conversation for ``job_id``.

    Only the poster and the assigned worker may open it.  Questions about
    a job nobody has accepted yet go through a DIRECT conversation.
    """
    job = await db.get(Job, job_id)
    if job is None:
        raise NotFoundError("Job not found")

    participants = _job_participants(job)
    if requester_id not in participants:
        raise ForbiddenError("You are not part of this job")

    conv = await _load_conversation(db, context_id=job_id)
    if conv is None:
        await _create_if_absent(
            db,
            values={"type": ConversationType.JOB, "context_id": job_id},
            key_column="context_id",
            participant_ids=participants,
        )
    elif set(conv.participant_ids) != set(participants):
        await sync_job_participants(db, job)
    else:
        return conv

    conv = await _load_conversation(db, context_id=job_id)
    if conv is None:
        raise RuntimeError(f"Conversation for job {job_id} vanished after insert")
    return conv


async def resolve_conversation(
    db: AsyncSession,
    requester_id: uuid.UUID,
    *,
    recipient_id: uuid.UUID | None = None,
    job_id: uuid.UUID | None = None,
) -> Conversation:
    """Find or create a conversation: JOB when ``job_id`` is given, else DIRECT.

    On the JOB path any ``recipient_id`` is ignored; participants always
    come from the job.
    """
    if job_id is not None:
        return await resolve_job(db, requester_id, job_id)
    if recipient_id is None:
        raise ValidationError("Recipient ID is required")
    return await resolve_direct(db, requester_id, recipient_id)


async def resolve_target(
    db: AsyncSession,
    requester_id: uuid.UUID,
    target: MessageTarget,
) -> Conversation:
    """Turn any message target into a conversation the requester belongs to."""
    if isinstance(target, ConversationTarget):
        return await require_participant(db, target.conversation_id, requester_id)
    if isinstance(target, DirectTarget):
        return await resolve_direct(db, requester_id, target.recipient_id)
    if isinstance(target, JobTarget):
        return await resolve_job(db, requester_id, target.job_id)
    raise ValidationError("Unknown message target")


async def list_conversations(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> list[ConversationDTO]:
    """All conversations of ``user_id``, most recently active first."""
    stmt = (
        select(Conversation)
        .join(
            ConversationParticipant,
            ConversationParticipant.conversation_id == Conversation.id,
        )
        .where(ConversationParticipant.user_id == user_id)
        .order_by(Conversation.updated_at.desc(), Conversation.id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return [to_conversation_dto(c, user_id) for c in result.scalars().unique().all()]


# ---------------------------------------------------------------------------
# Message store
# ---------------------------------------------------------------------------

def _validate_content(
    content: str,
    attachment: Optional[AttachmentDTO],
    client_message_id: Optional[str],
) -> str:
    content = content or ""
    if not content.strip() and attachment is None:
        raise ValidationError("Message content or attachment is required")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"Message exceeds maximum length of {MAX_MESSAGE_LENGTH} characters"
        )
    if client_message_id is not None and not (
        0 < len(client_message_id) <= MAX_CLIENT_MESSAGE_ID_LENGTH
    ):
        raise ValidationError("Invalid clientMessageId")
    return content


async def _find_by_client_id(
    db: AsyncSession,
    sender_id: uuid.UUID,
    client_message_id: str,
) -> Optional[Message]:
    stmt = (
        select(Message)
        .where(
            Message.sender_id == sender_id,
            Message.client_message_id == client_message_id,
        )
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def post_message(
    db: AsyncSession,
    conversation_id: uuid.UUID,
    sender_id: uuid.UUID,
    content: str,
    *,
    attachment: Optional[AttachmentDTO] = None,
    client_message_id: Optional[str] = None,
) -> PostResult:
    """Append a message and update the conversation preview.

    A retry carrying a ``client_message_id`` the sender already used in
    this conversation returns the stored message with ``created=False``
    and changes nothing.

    Raises:
        ValidationError: Empty message without attachment, or too long.
        NotFoundError: Conversation missing or sender not a participant.
        ConflictError: ``client_message_id`` reused in another conversation.
    """
    content = _validate_content(content, attachment, client_message_id)
    conv = await require_participant(db, conversation_id, sender_id)

    message_id = uuid.uuid4()
    now = utcnow()
    stmt = _insert_ignoring_conflicts(
        db, Message, ["sender_id", "client_message_id"]
    ).values(
        id=message_id,
        conversation_id=conv.id,
        sender_id=sender_id,
        content=content,
        attachment_path=attachment.path if attachment else None,
        attachment_kind=AttachmentKind(attachment.type) if attachment else None,
        attachment_name=attachment.original_name if attachment else None,
        client_message_id=client_message_id,
        created_at=now,
    ).returning(Message.id)
    result = await db.execute(stmt)
    created = result.scalar_one_or_none() is not None

    if created:
        msg = await db.get(Message, message_id)
    else:
        msg = await _find_by_client_id(db, sender_id, client_message_id)
        if msg is None:
            raise RuntimeError(f"Message {client_message_id} conflicted but was not found")
        if msg.conversation_id != conv.id:
            raise ConflictError("clientMessageId was already used in another conversation")
        logger.info(
            "Duplicate message suppressed: id=%s conversation=%s client_id=%s",
            msg.id, conv.id, client_message_id,
        )

    if created:
        conv.last_message_id = message_id
        conv.last_message_content = content
        conv.updated_at = now
        await db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conv.id,
                ConversationParticipant.user_id != sender_id,
            )
            .values(unread_count=ConversationParticipant.unread_count + 1)
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        logger.info(
            "Chat message created: id=%s conversation=%s sender=%s len=%d attachment=%s",
            message_id, conv.id, sender_id, len(content), attachment is not None,
        )
        conv = await _load_conversation(db, conversation_id=conv.id)

    conv_dto = to_conversation_dto(conv, sender_id)
    return PostResult(
        message=to_message_dto(msg),
        conversation=conv_dto,
        created=created,
        recipients=[p for p in conv_dto.participants if p.id != sender_id],
    )


async def get_history(
    db: AsyncSession,
    conversation_id: uuid.UUID,
    requester_id: uuid.UUID,
) -> list[MessageDTO]:
    """Full message history, oldest first."""
    await require_participant(db, conversation_id, requester_id)
    stmt = (
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return [to_message_dto(m) for m in result.scalars().all()]


async def mark_read(
    db: AsyncSession,
    conversation_id: uuid.UUID,
    reader_id: uuid.UUID,
) -> int:
    """Mark every message from other senders as read by ``reader_id``.

    Also resets the reader's unread counter.  Returns the number of
    messages newly marked.
    """
    await require_participant(db, conversation_id, reader_id)

    already_read = select(MessageRead.message_id).where(MessageRead.user_id == reader_id)
    stmt = select(Message.id).where(
        Message.conversation_id == conversation_id,
        or_(Message.sender_id.is_(None), Message.sender_id != reader_id),
        Message.id.not_in(already_read),
    )
    unread_ids = list((await db.execute(stmt)).scalars().all())

    now = utcnow()
    for message_id in unread_ids:
        db.add(MessageRead(message_id=message_id, user_id=reader_id, read_at=now))

    await db.execute(
        update(ConversationParticipant)
        .where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == reader_id,
        )
        .values(unread_count=0)
        .execution_options(synchronize_session=False)
    )
    await db.flush()

    if unread_ids:
        logger.info(
            "Marked %d messages as read: conversation=%s reader=%s",
            len(unread_ids), conversation_id, reader_id,
        )
    return len(unread_ids)
