"""
Moderation reports filed by students against a user or a job.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ValidationError
from src.models.report import Report, ReportStatus, ReportTargetType
from src.models.user import User

logger = logging.getLogger(__name__)


async def create_report(
    db: AsyncSession,
    reporter: User,
    *,
    target_type: Optional[str],
    target_id: Optional[uuid.UUID],
    reason: Optional[str],
) -> Report:
    if not target_type or target_id is None or not reason or not reason.strip():
        raise ValidationError("All fields required")
    try:
        kind = ReportTargetType(target_type.strip().lower())
    except ValueError:
        raise ValidationError("Invalid target type") from None

    report = Report(
        reported_by_id=reporter.id,
        target_type=kind,
        target_id=target_id,
        reason=reason.strip(),
        status=ReportStatus.PENDING,
    )
    db.add(report)
    await db.flush()
    await db.refresh(report, ["reporter"])
    logger.info("Report %s filed by %s against %s %s", report.id, reporter.id, kind.value, target_id)
    return report
