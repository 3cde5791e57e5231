"""
Admin API Routes
================

Moderation endpoints for users with the ``admin`` or ``superadmin`` role.

Routes:
  GET    /api/admin/stats              -- Dashboard counts
  GET    /api/admin/users              -- Users (paginated, filterable)
  GET    /api/admin/users/{id}         -- User detail with job stats
  PUT    /api/admin/users/{id}         -- Edit a user
  PATCH  /api/admin/users/{id}/ban     -- Toggle ban
  DELETE /api/admin/users/{id}         -- Deactivate (soft delete)
  GET    /api/admin/jobs               -- Jobs (paginated, filterable)
  GET    /api/admin/jobs/{id}          -- Job detail
  PUT    /api/admin/jobs/{id}          -- Edit a job
  DELETE /api/admin/jobs/{id}          -- Delete a job in any status
  GET    /api/admin/reports            -- Reports (paginated)
  PATCH  /api/admin/reports/{id}       -- Resolve or dismiss a report
  DELETE /api/admin/reviews/{job_id}   -- Remove a worker rating
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Query

from src.api.deps import AdminUser, DBSession
from src.api.schemas.admin import (
    AdminUpdateUserRequest,
    AdminUserResponse,
    OverviewOut,
    StatsData,
    StatsResponse,
    UserDetailData,
    UserDetailResponse,
    UserPageData,
    UserPageResponse,
    UserStatsOut,
)
from src.api.schemas.common import MessageResponse, PaginationMeta, UserOut
from src.api.schemas.job import (
    AdminUpdateJobRequest,
    JobOut,
    JobPageData,
    JobPageResponse,
    JobResponse,
)
from src.api.schemas.report import (
    ReportOut,
    ReportPageData,
    ReportPageResponse,
    ReportResponse,
    UpdateReportRequest,
)
from src.core.config import settings
from src.services import adminService
from src.services.jobService import load_job

router = APIRouter(prefix="/admin", tags=["Admin"])


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

@router.get("/stats", response_model=StatsResponse, summary="Dashboard statistics")
async def get_stats(db: DBSession, admin: AdminUser) -> StatsResponse:
    stats = await adminService.get_stats(db)
    return StatsResponse(
        data=StatsData(
            overview=OverviewOut(**stats.overview),
            jobs_by_category=stats.jobs_by_category,
            jobs_by_status=stats.jobs_by_status,
        )
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@router.get("/users", response_model=UserPageResponse, summary="List users")
async def list_users(
    db: DBSession,
    admin: AdminUser,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.default_page_size, ge=1, alias="limit"),
    search: str = Query(default=""),
    role: str = Query(default=""),
    is_active: Optional[bool] = Query(default=None, alias="isActive"),
    is_banned: Optional[bool] = Query(default=None, alias="isBanned"),
) -> UserPageResponse:
    result = await adminService.list_users(
        db,
        page=page,
        page_size=page_size,
        search=search,
        role=role,
        is_active=is_active,
        is_banned=is_banned,
    )
    return UserPageResponse(
        data=UserPageData(
            items=[UserOut.model_validate(u) for u in result.items],
            meta=PaginationMeta.from_result(result),
        )
    )


@router.get("/users/{user_id}", response_model=UserDetailResponse, summary="User detail")
async def get_user(db: DBSession, admin: AdminUser, user_id: uuid.UUID) -> UserDetailResponse:
    user, stats = await adminService.get_user_detail(db, user_id)
    return UserDetailResponse(
        data=UserDetailData(user=UserOut.model_validate(user), stats=UserStatsOut(**stats))
    )


@router.put("/users/{user_id}", response_model=AdminUserResponse, summary="Edit a user")
async def update_user(
    db: DBSession,
    admin: AdminUser,
    user_id: uuid.UUID,
    body: AdminUpdateUserRequest,
) -> AdminUserResponse:
    user = await adminService.update_user(
        db,
        user_id,
        name=body.name,
        role=body.role,
        is_active=body.is_active,
        phone=body.phone,
        bio=body.bio,
    )
    return AdminUserResponse(data=UserOut.model_validate(user))


@router.patch("/users/{user_id}/ban", response_model=AdminUserResponse, summary="Toggle ban")
async def toggle_ban(db: DBSession, admin: AdminUser, user_id: uuid.UUID) -> AdminUserResponse:
    user = await adminService.toggle_ban(db, user_id)
    message = "User banned successfully" if user.is_banned else "User unbanned successfully"
    return AdminUserResponse(data=UserOut.model_validate(user), message=message)


@router.delete("/users/{user_id}", response_model=MessageResponse, summary="Deactivate a user")
async def deactivate_user(db: DBSession, admin: AdminUser, user_id: uuid.UUID) -> MessageResponse:
    await adminService.deactivate_user(db, user_id)
    return MessageResponse(message="User deactivated successfully")


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

@router.get("/jobs", response_model=JobPageResponse, summary="List jobs")
async def list_jobs(
    db: DBSession,
    admin: AdminUser,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.default_page_size, ge=1, alias="limit"),
    search: str = Query(default=""),
    status: str = Query(default=""),
    category: str = Query(default=""),
) -> JobPageResponse:
    result = await adminService.list_jobs(
        db,
        page=page,
        page_size=page_size,
        search=search,
        status=status,
        category=category,
    )
    return JobPageResponse(
        data=JobPageData(
            items=[JobOut.model_validate(j) for j in result.items],
            meta=PaginationMeta.from_result(result),
        )
    )


@router.get("/jobs/{job_id}", response_model=JobResponse, summary="Job detail")
async def get_job(db: DBSession, admin: AdminUser, job_id: uuid.UUID) -> JobResponse:
    job = await load_job(db, job_id)
    return JobResponse(data=JobOut.model_validate(job))


@router.put("/jobs/{job_id}", response_model=JobResponse, summary="Edit a job")
async def update_job(
    db: DBSession,
    admin: AdminUser,
    job_id: uuid.UUID,
    body: AdminUpdateJobRequest,
) -> JobResponse:
    job = await adminService.update_job(
        db,
        job_id,
        admin,
        status=body.status,
        title=body.title,
        description=body.description,
        payment_amount=body.payment_amount,
    )
    return JobResponse(data=JobOut.model_validate(job))


@router.delete("/jobs/{job_id}", response_model=MessageResponse, summary="Delete a job")
async def delete_job(db: DBSession, admin: AdminUser, job_id: uuid.UUID) -> MessageResponse:
    await adminService.delete_job(db, job_id, admin)
    return MessageResponse(message="Job deleted successfully")


# ---------------------------------------------------------------------------
# Reports & reviews
# ---------------------------------------------------------------------------

@router.get("/reports", response_model=ReportPageResponse, summary="List reports")
async def list_reports(
    db: DBSession,
    admin: AdminUser,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.default_page_size, ge=1, alias="limit"),
    status: str = Query(default=""),
) -> ReportPageResponse:
    result = await adminService.list_reports(
        db, page=page, page_size=page_size, status=status
    )
    return ReportPageResponse(
        data=ReportPageData(
            items=[ReportOut.model_validate(r) for r in result.items],
            meta=PaginationMeta.from_result(result),
        )
    )


@router.patch("/reports/{report_id}", response_model=ReportResponse, summary="Update a report")
async def update_report(
    db: DBSession,
    admin: AdminUser,
    report_id: uuid.UUID,
    body: UpdateReportRequest,
) -> ReportResponse:
    report = await adminService.resolve_report(db, report_id, body.status)
    return ReportResponse(
        data=ReportOut.model_validate(report),
        message=f"Report marked {report.status.value}",
    )


@router.delete("/reviews/{job_id}", response_model=MessageResponse, summary="Remove a review")
async def remove_review(db: DBSession, admin: AdminUser, job_id: uuid.UUID) -> MessageResponse:
    await adminService.remove_review(db, job_id, admin)
    return MessageResponse(message="Review removed successfully")
