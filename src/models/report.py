"""
SQLAlchemy model for user-submitted moderation reports.
"""

import enum
import uuid

from sqlalchemy import Enum, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ReportTargetType(str, enum.Enum):
    USER = "user"
    JOB = "job"


class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class Report(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "reports"

    reported_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_type: Mapped[ReportTargetType] = mapped_column(
        Enum(
            ReportTargetType,
            name="report_target_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    # Polymorphic: a user id or a job id depending on target_type
    target_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[ReportStatus] = mapped_column(
        Enum(
            ReportStatus,
            name="report_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ReportStatus.PENDING,
        index=True,
    )

    reporter: Mapped["User"] = relationship("User", lazy="selectin")  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<Report(id={self.id}, target_type={self.target_type}, "
            f"status={self.status})>"
        )
