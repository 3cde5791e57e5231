"""
SQLAlchemy model for the jobs table.

A job moves linearly ``open -> in-progress -> completed``; see
``src.services.jobStateManager`` for the transition rules.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


def _enum_values(enum_cls):
    return [m.value for m in enum_cls]


class JobStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class JobCategory(str, enum.Enum):
    TECH = "tech"
    DELIVERY = "delivery"
    DESIGN = "design"
    WRITING = "writing"
    TUTORING = "tutoring"
    OTHER = "other"


class ExpectedDuration(str, enum.Enum):
    ONE_TO_TWO_HOURS = "1-2 hours"
    TWO_TO_FOUR_HOURS = "2-4 hours"
    FOUR_TO_EIGHT_HOURS = "4-8 hours"
    ONE_TO_TWO_DAYS = "1-2 days"
    TWO_TO_FIVE_DAYS = "2-5 days"
    OVER_A_WEEK = "1+ week"


class Job(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "jobs"
    __table_args__ = (
        CheckConstraint(
            "worker_rating IS NULL OR (worker_rating BETWEEN 1 AND 5)",
            name="worker_rating_range",
        ),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    payment_amount: Mapped[float] = mapped_column(Float, nullable=False)

    category: Mapped[JobCategory] = mapped_column(
        Enum(JobCategory, name="job_category", values_callable=_enum_values),
        nullable=False,
        default=JobCategory.OTHER,
        index=True,
    )
    expected_duration: Mapped[ExpectedDuration] = mapped_column(
        Enum(ExpectedDuration, name="job_duration", values_callable=_enum_values),
        nullable=False,
        default=ExpectedDuration.TWO_TO_FOUR_HOURS,
    )
    deadline: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    posted_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    accepted_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="job_status", values_callable=_enum_values),
        nullable=False,
        default=JobStatus.OPEN,
        index=True,
    )
    worker_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Relationships
    poster: Mapped["User"] = relationship(  # noqa: F821
        "User", foreign_keys=[posted_by_id], lazy="selectin"
    )
    worker: Mapped[Optional["User"]] = relationship(  # noqa: F821
        "User", foreign_keys=[accepted_by_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, title={self.title!r}, status={self.status})>"
