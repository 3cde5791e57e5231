"""
Admin Service
=============

Moderation operations for the admin dashboard and the superadmin tools.

Admin (role ``admin`` or ``superadmin``):
  - dashboard statistics
  - paginated user, job and report listings with filters
  - user edits, ban toggle, soft deactivation
  - job edits and deletion, review removal

Superadmin only:
  - system announcements to every connected client
  - force verification, role changes, impersonation, permanent deletion

Admin job edits keep the job invariant intact: a job is ``open`` exactly
when it has no worker.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from src.events.jobEvents import emit_job_deleted, emit_job_status_changed, emit_review_removed
from src.models.base import utcnow
from src.models.job import Job, JobCategory, JobStatus
from src.models.report import Report, ReportStatus
from src.models.user import User, UserRole
from src.realtime.presenceRegistry import presence
from src.realtime.socketServer import broadcast_all
from src.services import auth_service, chatService, profileService
from src.services.jobService import (
    PaginatedResult,
    count_jobs,
    load_job,
    parse_enum,
    search_filter,
)

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)
ANNOUNCEMENT_TYPES = ("info", "warning", "success")
ASSIGNABLE_ROLES = (UserRole.USER, UserRole.ADMIN)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def clamp_page(page: int, page_size: int) -> tuple[int, int]:
    page = max(page, 1)
    page_size = max(1, min(page_size, settings.max_page_size))
    return page, page_size


async def _paginate(
    db: AsyncSession,
    model,
    filters: list,
    order,
    page: int,
    page_size: int,
) -> PaginatedResult:
    page, page_size = clamp_page(page, page_size)
    total = (
        await db.execute(select(func.count()).select_from(model).where(*filters))
    ).scalar_one()
    stmt = (
        select(model)
        .where(*filters)
        .order_by(order, model.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = list((await db.execute(stmt)).scalars().all())
    return PaginatedResult(items=items, total_items=total, page=page, page_size=page_size)


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
    user = (await db.execute(stmt)).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


def _parse_role(role: Optional[str]) -> UserRole:
    try:
        parsed = UserRole(role)
    except ValueError:
        parsed = None
    if parsed not in ASSIGNABLE_ROLES:
        raise ValidationError("Invalid role. Cannot promote to superadmin directly.")
    return parsed


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

@dataclass
class DashboardStats:
    overview: dict[str, int]
    jobs_by_category: dict[str, int]
    jobs_by_status: dict[str, int]


async def _count_users(db: AsyncSession, *filters) -> int:
    stmt = select(func.count(User.id)).where(*filters)
    return (await db.execute(stmt)).scalar_one()


async def _group_jobs(db: AsyncSession, column) -> dict[str, int]:
    rows = await db.execute(select(column, func.count(Job.id)).group_by(column))
    return {key.value: count for key, count in rows.all()}


async def get_stats(db: AsyncSession) -> DashboardStats:
    since = utcnow() - RECENT_WINDOW
    overview = {
        "total_users": await _count_users(db),
        "active_users": await _count_users(db, User.is_active.is_(True)),
        "total_jobs": await count_jobs(db),
        "open_jobs": await count_jobs(db, Job.status == JobStatus.OPEN),
        "in_progress_jobs": await count_jobs(db, Job.status == JobStatus.IN_PROGRESS),
        "completed_jobs": await count_jobs(db, Job.status == JobStatus.COMPLETED),
        "recent_users": await _count_users(db, User.created_at >= since),
        "recent_jobs": await count_jobs(db, Job.created_at >= since),
    }
    return DashboardStats(
        overview=overview,
        jobs_by_category=await _group_jobs(db, Job.category),
        jobs_by_status=await _group_jobs(db, Job.status),
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def list_users(
    db: AsyncSession,
    *,
    page: int = 1,
    page_size: int = 20,
    search: str = "",
    role: str = "",
    is_active: Optional[bool] = None,
    is_banned: Optional[bool] = None,
) -> PaginatedResult:
    filters = []
    if search:
        filters.append(search_filter(search, User.name, User.email))
    if role:
        filters.append(User.role == parse_enum(UserRole, role, "role"))
    if is_active is not None:
        filters.append(User.is_active.is_(is_active))
    if is_banned is not None:
        filters.append(User.is_banned.is_(is_banned))
    return await _paginate(db, User, filters, User.created_at.desc(), page, page_size)


async def get_user_detail(db: AsyncSession, user_id: uuid.UUID) -> tuple[User, dict[str, int]]:
    user = await get_user(db, user_id)
    stats = {
        "jobs_posted": await count_jobs(db, Job.posted_by_id == user_id),
        "jobs_completed": await count_jobs(
            db, Job.accepted_by_id == user_id, Job.status == JobStatus.COMPLETED
        ),
    }
    return user, stats


async def update_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    name: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    phone: Optional[str] = None,
    bio: Optional[str] = None,
) -> User:
    user = await get_user(db, user_id)
    if role is not None:
        new_role = _parse_role(role)
        if user.role == UserRole.SUPERADMIN:
            raise ForbiddenError("Cannot demote a God User")
        user.role = new_role
    if name:
        user.name = name.strip()
    if is_active is not None:
        user.is_active = is_active
    if phone is not None:
        user.phone = phone
    if bio is not None:
        user.bio = bio
    await db.flush()
    logger.info("Admin updated user %s", user_id)
    return user


async def toggle_ban(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await get_user(db, user_id)
    if user.role == UserRole.SUPERADMIN:
        raise ForbiddenError("Cannot ban a Super Admin")
    user.is_banned = not user.is_banned
    await db.flush()
    logger.info("User %s %s", user_id, "banned" if user.is_banned else "unbanned")
    return user


async def deactivate_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await get_user(db, user_id)
    if user.role == UserRole.SUPERADMIN:
        raise ForbiddenError("Cannot deactivate a Super Admin")
    user.is_active = False
    await db.flush()
    logger.info("User %s deactivated", user_id)
    return user


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

async def list_jobs(
    db: AsyncSession,
    *,
    page: int = 1,
    page_size: int = 20,
    search: str = "",
    status: str = "",
    category: str = "",
) -> PaginatedResult:
    filters = []
    if search:
        filters.append(search_filter(search, Job.title, Job.description))
    if status:
        filters.append(Job.status == parse_enum(JobStatus, status, "status"))
    if category:
        filters.append(Job.category == parse_enum(JobCategory, category, "category"))
    return await _paginate(db, Job, filters, Job.created_at.desc(), page, page_size)


async def update_job(
    db: AsyncSession,
    job_id: uuid.UUID,
    admin: User,
    *,
    status: Optional[str] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    payment_amount: Optional[float] = None,
) -> Job:
    """Edit a job.

    Moving a job back to ``open`` releases its worker and clears the
    rating.  A job without a worker cannot be moved out of ``open``.
    """
    job = await load_job(db, job_id)
    worker_changed = False

    if status:
        new_status = parse_enum(JobStatus, status, "status")
        old_status = job.status
        if new_status == JobStatus.OPEN:
            job.accepted_by_id = None
            job.worker_rating = None
            worker_changed = old_status != JobStatus.OPEN
        elif job.accepted_by_id is None:
            raise ConflictError("Job has no assigned worker")
        job.status = new_status
        if new_status != old_status:
            emit_job_status_changed(job_id, old_status.value, new_status.value, admin.id)
    if title:
        job.title = title.strip()
    if description is not None:
        job.description = description
    if payment_amount:
        if payment_amount < 0:
            raise ValidationError("Price must be positive")
        job.payment_amount = float(payment_amount)

    await db.flush()
    if worker_changed:
        await chatService.sync_job_participants(db, job)
    return await load_job(db, job_id)


async def delete_job(db: AsyncSession, job_id: uuid.UUID, admin: User) -> None:
    """Delete any job regardless of status."""
    job = await load_job(db, job_id)
    await db.delete(job)
    await db.flush()
    emit_job_deleted(job_id, admin.id, reason="admin")


async def remove_review(db: AsyncSession, job_id: uuid.UUID, admin: User) -> Job:
    """Drop a job's worker rating and take it out of the worker's average."""
    job = await load_job(db, job_id)
    if job.worker_rating is None:
        raise ValidationError("No review to remove")

    rating = job.worker_rating
    job.worker_rating = None

    if job.accepted_by_id is not None:
        worker = await get_user(db, job.accepted_by_id)
        if worker.rating_count > 0:
            total = worker.rating * worker.rating_count - rating
            worker.rating_count -= 1
            worker.rating = total / worker.rating_count if worker.rating_count > 0 else 0.0

    await db.flush()
    emit_review_removed(job_id, admin.id, rating)
    return await load_job(db, job_id)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

async def list_reports(
    db: AsyncSession,
    *,
    page: int = 1,
    page_size: int = 20,
    status: str = "",
) -> PaginatedResult:
    filters = []
    if status:
        filters.append(Report.status == parse_enum(ReportStatus, status, "status"))
    return await _paginate(db, Report, filters, Report.created_at.desc(), page, page_size)


# ---------------------------------------------------------------------------
# Superadmin
# ---------------------------------------------------------------------------

async def broadcast_announcement(message: Optional[str], kind: str = "info") -> dict[str, Any]:
    """Send a ``system_announcement`` to every connected client."""
    if not message or not message.strip():
        raise ValidationError("Message required")
    if kind not in ANNOUNCEMENT_TYPES:
        kind = "info"
    payload = {
        "message": message.strip(),
        "type": kind,
        "timestamp": utcnow().isoformat(),
    }
    await broadcast_all("system_announcement", payload)
    return {"online_count": presence.online_count(), "payload": payload}


async def force_verify(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await get_user(db, user_id)
    user.is_verified = True
    user.otp = None
    user.otp_expires_at = None
    await db.flush()
    logger.info("User %s verified by superadmin", user_id)
    return user


async def set_role(db: AsyncSession, user_id: uuid.UUID, role: Optional[str]) -> User:
    new_role = _parse_role(role)
    user = await get_user(db, user_id)
    if user.role == UserRole.SUPERADMIN:
        raise ForbiddenError("Cannot demote a God User")
    user.role = new_role
    await db.flush()
    logger.info("User %s role set to %s", user_id, new_role.value)
    return user


async def impersonate(db: AsyncSession, user_id: uuid.UUID, superadmin: User) -> tuple[User, str]:
    """Short-lived token acting as ``user_id``.  The token records who issued it."""
    user = await get_user(db, user_id)
    token, _ = auth_service.create_access_token(
        user,
        expires_delta=timedelta(minutes=settings.impersonation_token_expire_minutes),
        impersonator_id=superadmin.id,
    )
    logger.warning("Superadmin %s impersonating user %s", superadmin.id, user_id)
    return user, token


async def hard_delete_user(db: AsyncSession, user_id: uuid.UUID) -> None:
    user = await get_user(db, user_id)
    if user.role == UserRole.SUPERADMIN:
        raise ForbiddenError("Cannot delete a Super Admin")
    await profileService.purge_user(db, user.id)
    db.expunge(user)


async def resolve_report(db: AsyncSession, report_id: uuid.UUID, status: str) -> Report:
    report = await db.get(Report, report_id)
    if report is None:
        raise NotFoundError("Report not found")
    report.status = parse_enum(ReportStatus, status, "status")
    await db.flush()
    return report
