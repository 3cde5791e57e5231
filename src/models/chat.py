"""
SQLAlchemy models for conversations, their participants, messages and
read receipts.

A conversation is either DIRECT (exactly one per unordered user pair,
keyed by ``direct_key``) or JOB (exactly one per job, keyed by
``context_id``).  Both keys carry unique constraints, so concurrent
"start conversation" calls converge on a single row.

Messages are immutable once written.  ``client_message_id`` is the
sender-chosen idempotency key echoed back to clients for optimistic
reconciliation.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


class ConversationType(str, enum.Enum):
    JOB = "JOB"
    DIRECT = "DIRECT"


class AttachmentKind(str, enum.Enum):
    IMAGE = "image"
    FILE = "file"


def direct_key_for(user_a: uuid.UUID, user_b: uuid.UUID) -> str:
    """Order-independent key for a DIRECT conversation between two users."""
    first, second = sorted((str(user_a), str(user_b)))
    return f"{first}:{second}"


class Conversation(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A chat thread between two or more users."""

    __tablename__ = "conversations"

    type: Mapped[ConversationType] = mapped_column(
        Enum(ConversationType, name="conversation_type"),
        nullable=False,
    )

    # JOB conversations: the job they discuss
    context_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=True,
        unique=True,
    )

    # DIRECT conversations: sorted participant pair
    direct_key: Mapped[Optional[str]] = mapped_column(
        String(80),
        nullable=True,
        unique=True,
    )

    # Preview of the latest message (denormalized for conversation lists)
    last_message_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), nullable=True
    )
    last_message_content: Mapped[str] = mapped_column(
        Text, nullable=False, default=""
    )

    # Relationships
    participants: Mapped[list["ConversationParticipant"]] = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    job: Mapped[Optional["Job"]] = relationship("Job", lazy="selectin")  # noqa: F821

    @property
    def participant_ids(self) -> list[uuid.UUID]:
        return [p.user_id for p in self.participants]

    def has_participant(self, user_id: uuid.UUID) -> bool:
        return any(p.user_id == user_id for p in self.participants)

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, type={self.type})>"


class ConversationParticipant(Base):
    """Membership row with the member's unread counter."""

    __tablename__ = "conversation_participants"

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    unread_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    conversation: Mapped[Conversation] = relationship(
        "Conversation", back_populates="participants"
    )
    user: Mapped["User"] = relationship("User", lazy="selectin")  # noqa: F821


class Message(UUIDPrimaryKeyMixin, Base):
    """A single immutable chat message."""

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("sender_id", "client_message_id"),
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Null once the sender's account has been deleted
    sender_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    attachment_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attachment_kind: Mapped[Optional[AttachmentKind]] = mapped_column(
        Enum(
            AttachmentKind,
            name="attachment_kind",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=True,
    )
    attachment_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    client_message_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # Relationships
    sender: Mapped[Optional["User"]] = relationship("User", lazy="selectin")  # noqa: F821
    reads: Mapped[list["MessageRead"]] = relationship(
        "MessageRead",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def read_by(self) -> list[uuid.UUID]:
        return [r.user_id for r in self.reads]

    def __repr__(self) -> str:
        return (
            f"<Message(id={self.id}, conversation_id={self.conversation_id}, "
            f"sender_id={self.sender_id})>"
        )


class MessageRead(Base):
    """Read receipt: ``user_id`` has seen ``message_id``."""

    __tablename__ = "message_reads"

    message_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("messages.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    read_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
