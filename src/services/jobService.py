"""
Job Service
===========

Business logic for the job board.  All operations use async SQLAlchemy
sessions and enforce business rules including:

  - Linear lifecycle ``open -> in-progress -> completed`` via jobStateManager
  - Only open jobs can be deleted, and only by their poster
  - Accepting is a conditional update, so two students racing for the same
    job cannot both win
  - A completed job is reviewed once by its poster; the worker's rating is
    a running average updated in the same statement
  - Event emission on every state change, email to the poster on accept
    and complete

Key functions:
  - list_open_jobs   -- public board with search, filters and sorting
  - get_my_jobs      -- posted + accepted jobs of a user
  - create_job / delete_job
  - accept_job / complete_job / review_job
  - toggle_favorite / list_favorites
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import and_, delete, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from src.events.jobEvents import (
    emit_job_created,
    emit_job_deleted,
    emit_job_reviewed,
    emit_job_status_changed,
)
from src.models.base import utcnow
from src.models.job import ExpectedDuration, Job, JobCategory, JobStatus
from src.models.user import User, user_favorites
from src.services import chatService, notificationService
from src.services.jobStateManager import JobActor, actor_for, validate_transition

logger = logging.getLogger(__name__)

SORT_OPTIONS = ("newest", "price-low", "price-high", "deadline")


# ---------------------------------------------------------------------------
# Pagination helper
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PaginatedResult:
    """Generic container for a page of results plus metadata."""

    items: Sequence
    total_items: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.total_items == 0:
            return 0
        return math.ceil(self.total_items / self.page_size)


@dataclass
class MyJobs:
    posted: list[Job]
    accepted: list[Job]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def load_job(db: AsyncSession, job_id: uuid.UUID) -> Job:
    """Fetch a job with fresh poster/worker relationships.

    Raises:
        NotFoundError: If the job does not exist.
    """
    stmt = (
        select(Job)
        .where(Job.id == job_id)
        .execution_options(populate_existing=True)
    )
    job = (await db.execute(stmt)).scalar_one_or_none()
    if job is None:
        raise NotFoundError("Job not found")
    return job


def search_filter(term: str, *columns):
    """Case-insensitive substring match over ``columns``."""
    pattern = f"%{term.strip()}%"
    return or_(*(col.ilike(pattern) for col in columns))


def parse_enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field_name}. Must be one of: {allowed}") from None


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_open_jobs(
    db: AsyncSession,
    *,
    search: str = "",
    category: str = "",
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    duration: str = "",
    sort_by: str = "newest",
) -> list[Job]:
    """Open jobs for the public board."""
    filters = [Job.status == JobStatus.OPEN]
    if search:
        filters.append(search_filter(search, Job.title, Job.description))
    if category:
        filters.append(Job.category == parse_enum(JobCategory, category, "category"))
    if min_price is not None:
        filters.append(Job.payment_amount >= min_price)
    if max_price is not None:
        filters.append(Job.payment_amount <= max_price)
    if duration:
        filters.append(
            Job.expected_duration == parse_enum(ExpectedDuration, duration, "duration")
        )

    if sort_by == "price-low":
        order = [Job.payment_amount.asc()]
    elif sort_by == "price-high":
        order = [Job.payment_amount.desc()]
    elif sort_by == "deadline":
        # Jobs without a deadline go last
        order = [Job.deadline.is_(None), Job.deadline.asc()]
    else:
        order = [Job.created_at.desc()]

    stmt = select(Job).where(and_(*filters)).order_by(*order, Job.id)
    return list((await db.execute(stmt)).scalars().all())


async def get_my_jobs(db: AsyncSession, user_id: uuid.UUID) -> MyJobs:
    """Jobs the user posted and jobs the user accepted, newest first."""
    posted = await db.execute(
        select(Job).where(Job.posted_by_id == user_id).order_by(Job.created_at.desc())
    )
    accepted = await db.execute(
        select(Job).where(Job.accepted_by_id == user_id).order_by(Job.created_at.desc())
    )
    return MyJobs(
        posted=list(posted.scalars().all()),
        accepted=list(accepted.scalars().all()),
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def create_job(
    db: AsyncSession,
    poster: User,
    *,
    title: Optional[str],
    price: Optional[float],
    description: Optional[str] = None,
    category: Optional[str] = None,
    expected_duration: Optional[str] = None,
    deadline: Optional[datetime] = None,
) -> Job:
    """Create an open job.

    Raises:
        ValidationError: Missing title or price, or an unknown category or
            duration.
    """
    if not title or not title.strip() or not price:
        raise ValidationError("Title and price required")
    if price < 0:
        raise ValidationError("Price must be positive")

    job = Job(
        title=title.strip(),
        description=description or "",
        payment_amount=float(price),
        category=parse_enum(JobCategory, category or JobCategory.OTHER.value, "category"),
        expected_duration=parse_enum(
            ExpectedDuration,
            expected_duration or ExpectedDuration.TWO_TO_FOUR_HOURS.value,
            "duration",
        ),
        deadline=deadline,
        posted_by_id=poster.id,
        status=JobStatus.OPEN,
    )
    db.add(job)
    await db.flush()

    emit_job_created(job.id, poster.id, job.category.value, job.payment_amount)
    return await load_job(db, job.id)


async def delete_job(db: AsyncSession, job_id: uuid.UUID, user: User) -> None:
    """Delete one of the user's own jobs while it is still open."""
    job = await load_job(db, job_id)
    if job.posted_by_id != user.id:
        raise ForbiddenError("Only the job owner can delete")
    if job.status != JobStatus.OPEN:
        raise ConflictError("Can only delete jobs that are still open")

    await db.delete(job)
    await db.flush()
    emit_job_deleted(job_id, user.id)


async def accept_job(db: AsyncSession, job_id: uuid.UUID, user: User) -> Job:
    """Assign ``user`` as the worker of an open job."""
    job = await load_job(db, job_id)
    if job.status != JobStatus.OPEN:
        raise ConflictError("Job is no longer available")
    if job.accepted_by_id is not None:
        raise ConflictError("Job already accepted")

    check = validate_transition(job.status, JobStatus.IN_PROGRESS, actor_for(job, user.id))
    if not check.allowed:
        raise ConflictError(check.reason)

    stmt = (
        update(Job)
        .where(
            Job.id == job_id,
            Job.status == JobStatus.OPEN,
            Job.accepted_by_id.is_(None),
        )
        .values(
            status=JobStatus.IN_PROGRESS,
            accepted_by_id=user.id,
            updated_at=utcnow(),
        )
        .returning(Job.id)
        .execution_options(synchronize_session=False)
    )
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise ConflictError("Job already accepted")

    job = await load_job(db, job_id)
    await chatService.sync_job_participants(db, job)
    emit_job_status_changed(job_id, JobStatus.OPEN.value, JobStatus.IN_PROGRESS.value, user.id)
    notificationService.notify_job_accepted(job.poster.email, job.title, user.name)
    return job


async def complete_job(db: AsyncSession, job_id: uuid.UUID, user: User) -> Job:
    """Mark an in-progress job completed.  Only its worker may do this."""
    job = await load_job(db, job_id)
    if actor_for(job, user.id) != JobActor.WORKER:
        raise ForbiddenError("Only the assigned worker can complete this job")

    check = validate_transition(job.status, JobStatus.COMPLETED, JobActor.WORKER)
    if not check.allowed:
        raise ConflictError(check.reason)

    old_status = job.status
    job.status = JobStatus.COMPLETED
    await db.flush()

    job = await load_job(db, job_id)
    emit_job_status_changed(job_id, old_status.value, JobStatus.COMPLETED.value, user.id)
    notificationService.notify_job_completed(job.poster.email, job.title, user.name)
    return job


async def review_job(
    db: AsyncSession,
    job_id: uuid.UUID,
    user: User,
    rating: Optional[int],
) -> Job:
    """Record the poster's 1-5 rating of the worker on a completed job."""
    job = await load_job(db, job_id)
    if job.posted_by_id != user.id:
        raise ForbiddenError("Only the job poster can review")
    if job.status != JobStatus.COMPLETED:
        raise ConflictError("Job must be completed before reviewing")
    if job.worker_rating is not None:
        raise ConflictError("Job already reviewed")
    if rating is None or not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    stmt = (
        update(Job)
        .where(Job.id == job_id, Job.worker_rating.is_(None))
        .values(worker_rating=rating, updated_at=utcnow())
        .returning(Job.id)
        .execution_options(synchronize_session=False)
    )
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise ConflictError("Job already reviewed")

    if job.accepted_by_id is not None:
        await db.execute(
            update(User)
            .where(User.id == job.accepted_by_id)
            .values(
                rating=(User.rating * User.rating_count + rating) / (User.rating_count + 1),
                rating_count=User.rating_count + 1,
            )
            .execution_options(synchronize_session=False)
        )

    emit_job_reviewed(job_id, user.id, job.accepted_by_id, rating)
    return await load_job(db, job_id)


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

async def favorite_ids(db: AsyncSession, user_id: uuid.UUID) -> list[uuid.UUID]:
    stmt = select(user_favorites.c.job_id).where(user_favorites.c.user_id == user_id)
    return list((await db.execute(stmt)).scalars().all())


async def toggle_favorite(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
) -> tuple[bool, list[uuid.UUID]]:
    """Add or remove a favorite.  Returns (is_favorite_now, all_favorite_ids)."""
    if await db.get(Job, job_id) is None:
        raise NotFoundError("Job not found")

    current = await favorite_ids(db, user_id)
    if job_id in current:
        await db.execute(
            delete(user_favorites).where(
                user_favorites.c.user_id == user_id,
                user_favorites.c.job_id == job_id,
            )
        )
        is_favorite = False
    else:
        await db.execute(insert(user_favorites).values(user_id=user_id, job_id=job_id))
        is_favorite = True

    return is_favorite, await favorite_ids(db, user_id)


async def list_favorites(db: AsyncSession, user_id: uuid.UUID) -> list[Job]:
    """Favorited jobs that are still open, newest first."""
    stmt = (
        select(Job)
        .join(user_favorites, user_favorites.c.job_id == Job.id)
        .where(user_favorites.c.user_id == user_id, Job.status == JobStatus.OPEN)
        .order_by(Job.created_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

async def count_jobs(db: AsyncSession, *filters) -> int:
    stmt = select(func.count(Job.id)).where(*filters)
    return (await db.execute(stmt)).scalar_one()
