"""
Profile Service
===============

Own profile with job statistics, profile edits, the public profile shown
to other students, and account deletion.

Deleting an account removes the jobs the user posted and reopens the jobs
they had accepted, so no job is left pointing at a missing worker.  Chat
messages the user sent stay in place with a null sender.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError
from src.models.base import utcnow
from src.models.job import Job, JobStatus
from src.models.user import User
from src.services.jobService import count_jobs

logger = logging.getLogger(__name__)


@dataclass
class ProfileStats:
    jobs_posted: Optional[int]
    jobs_completed: int
    average_rating: float


@dataclass
class Profile:
    user: User
    stats: ProfileStats


def average_rating(user: User) -> float:
    """Worker rating rounded to one decimal, 0 when never rated."""
    if user.rating_count > 0:
        return round(user.rating, 1)
    return 0.0


async def _jobs_completed(db: AsyncSession, user_id: uuid.UUID) -> int:
    return await count_jobs(
        db, Job.accepted_by_id == user_id, Job.status == JobStatus.COMPLETED
    )


async def _load_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
    user = (await db.execute(stmt)).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_own_profile(db: AsyncSession, user_id: uuid.UUID) -> Profile:
    user = await _load_user(db, user_id)
    stats = ProfileStats(
        jobs_posted=await count_jobs(db, Job.posted_by_id == user_id),
        jobs_completed=await _jobs_completed(db, user_id),
        average_rating=average_rating(user),
    )
    return Profile(user=user, stats=stats)


async def get_public_profile(db: AsyncSession, user_id: uuid.UUID) -> Profile:
    """Profile of another user.  The route hides the email address."""
    user = await _load_user(db, user_id)
    stats = ProfileStats(
        jobs_posted=None,
        jobs_completed=await _jobs_completed(db, user_id),
        average_rating=average_rating(user),
    )
    return Profile(user=user, stats=stats)


async def update_profile(
    db: AsyncSession,
    user: User,
    *,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    bio: Optional[str] = None,
    profile_photo: Optional[str] = None,
) -> User:
    """Apply the supplied fields.  An empty name is ignored."""
    if name and name.strip():
        user.name = name.strip()
    if phone is not None:
        user.phone = phone.strip()
    if bio is not None:
        user.bio = bio.strip()
    if profile_photo is not None:
        user.profile_photo = profile_photo
    await db.flush()
    return await _load_user(db, user.id)


async def purge_user(db: AsyncSession, user_id: uuid.UUID) -> None:
    """Hard-delete a user together with the jobs they own.

    Jobs the user was working on go back to the board as open, without a
    worker or a rating.
    """
    await db.execute(
        delete(Job)
        .where(Job.posted_by_id == user_id)
        .execution_options(synchronize_session=False)
    )
    reopened = await db.execute(
        update(Job)
        .where(Job.accepted_by_id == user_id)
        .values(
            accepted_by_id=None,
            status=JobStatus.OPEN,
            worker_rating=None,
            updated_at=utcnow(),
        )
        .returning(Job.id)
        .execution_options(synchronize_session=False)
    )
    reopened_ids = list(reopened.scalars().all())
    await db.execute(
        delete(User)
        .where(User.id == user_id)
        .execution_options(synchronize_session=False)
    )
    logger.info("User %s deleted, %d accepted jobs reopened", user_id, len(reopened_ids))


async def delete_account(db: AsyncSession, user: User) -> None:
    await purge_user(db, user.id)
    db.expunge(user)
