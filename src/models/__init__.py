"""
Campus Gigs SQLAlchemy Models
=============================

Central import point for all ORM models. Import ``Base`` from here for
Alembic auto-generation and for the ``create_all`` convenience in tests.

Usage::

    from src.models import Base, User, Job, Conversation, Message
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# -- Users --
from .user import User, UserRole, user_favorites

# -- Jobs --
from .job import ExpectedDuration, Job, JobCategory, JobStatus

# -- Chat --
from .chat import (
    AttachmentKind,
    Conversation,
    ConversationParticipant,
    ConversationType,
    Message,
    MessageRead,
)

# -- Moderation --
from .report import Report, ReportStatus, ReportTargetType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    # Users
    "User",
    "UserRole",
    "user_favorites",
    # Jobs
    "Job",
    "JobStatus",
    "JobCategory",
    "ExpectedDuration",
    # Chat
    "Conversation",
    "ConversationParticipant",
    "ConversationType",
    "Message",
    "MessageRead",
    "AttachmentKind",
    # Moderation
    "Report",
    "ReportStatus",
    "ReportTargetType",
]
