"""
Report API Routes

  POST /api/reports -- Report a user or a job to the moderators
"""

from __future__ import annotations

from fastapi import APIRouter, status

from src.api.deps import CurrentUser, DBSession
from src.api.schemas.report import CreateReportRequest, ReportOut, ReportResponse
from src.services import reportService

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post(
    "",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="File a report",
)
async def create_report(
    db: DBSession,
    current_user: CurrentUser,
    body: CreateReportRequest,
) -> ReportResponse:
    report = await reportService.create_report(
        db,
        current_user,
        target_type=body.target_type,
        target_id=body.target_id,
        reason=body.reason,
    )
    return ReportResponse(data=ReportOut.model_validate(report))
