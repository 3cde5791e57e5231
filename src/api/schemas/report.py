"""
Pydantic v2 schemas for moderation reports.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, Field

from src.api.schemas.common import CamelModel, PaginationMeta, UserSummary
from src.models.report import ReportStatus, ReportTargetType


class CreateReportRequest(CamelModel):
    target_type: Optional[str] = None
    target_id: Optional[uuid.UUID] = None
    reason: Optional[str] = Field(default=None, max_length=2000)


class UpdateReportRequest(CamelModel):
    status: str


class ReportOut(CamelModel):
    id: uuid.UUID
    target_type: ReportTargetType
    target_id: uuid.UUID
    reason: str
    status: ReportStatus
    reported_by: Optional[UserSummary] = Field(
        default=None, validation_alias=AliasChoices("reporter", "reportedBy")
    )
    created_at: datetime


class ReportResponse(CamelModel):
    data: ReportOut
    message: str = "Report submitted successfully"


class ReportPageData(CamelModel):
    items: list[ReportOut]
    meta: PaginationMeta


class ReportPageResponse(CamelModel):
    data: ReportPageData
