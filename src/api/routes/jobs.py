"""
Job API Routes
==============

REST endpoints for the job board and the job lifecycle.

Routes:
  GET    /api/jobs                    -- Open jobs (public, filterable)
  POST   /api/jobs                    -- Post a job
  GET    /api/jobs/my                 -- Jobs I posted / accepted
  GET    /api/jobs/favorites          -- My favorited open jobs
  GET    /api/jobs/{job_id}           -- Job detail
  DELETE /api/jobs/{job_id}           -- Delete my open job
  POST   /api/jobs/{job_id}/accept    -- Accept an open job
  POST   /api/jobs/{job_id}/complete  -- Complete the job I am working on
  POST   /api/jobs/{job_id}/review    -- Rate the worker of my completed job
  POST   /api/jobs/{job_id}/favorite  -- Toggle favorite
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, status

from src.api.deps import CurrentUser, DBSession
from src.api.schemas.common import MessageResponse
from src.api.schemas.job import (
    CreateJobRequest,
    FavoriteToggleData,
    FavoriteToggleResponse,
    JobListResponse,
    JobOut,
    JobResponse,
    MyJobsData,
    MyJobsResponse,
    ReviewRequest,
)
from src.services import jobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def _jobs_out(jobs) -> list[JobOut]:
    return [JobOut.model_validate(j) for j in jobs]


# ---------------------------------------------------------------------------
# Board
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=JobListResponse,
    summary="List open jobs",
    description=(
        "Public job board. Filters: free-text search over title and "
        "description, category, price range and expected duration. "
        "Sort: newest, price-low, price-high, deadline."
    ),
)
async def list_jobs(
    db: DBSession,
    search: str = Query(default=""),
    category: str = Query(default=""),
    min_price: Optional[float] = Query(default=None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(default=None, alias="maxPrice", ge=0),
    duration: str = Query(default=""),
    sort_by: str = Query(default="newest", alias="sortBy"),
) -> JobListResponse:
    jobs = await jobService.list_open_jobs(
        db,
        search=search,
        category=category,
        min_price=min_price,
        max_price=max_price,
        duration=duration,
        sort_by=sort_by,
    )
    return JobListResponse(data=_jobs_out(jobs))


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a job",
)
async def create_job(
    db: DBSession,
    current_user: CurrentUser,
    body: CreateJobRequest,
) -> JobResponse:
    job = await jobService.create_job(
        db,
        current_user,
        title=body.title,
        price=body.price,
        description=body.description,
        category=body.category,
        expected_duration=body.expected_duration,
        deadline=body.deadline,
    )
    return JobResponse(data=JobOut.model_validate(job))


@router.get("/my", response_model=MyJobsResponse, summary="Jobs I posted and accepted")
async def my_jobs(db: DBSession, current_user: CurrentUser) -> MyJobsResponse:
    mine = await jobService.get_my_jobs(db, current_user.id)
    return MyJobsResponse(
        data=MyJobsData(posted=_jobs_out(mine.posted), accepted=_jobs_out(mine.accepted))
    )


@router.get("/favorites", response_model=JobListResponse, summary="My favorite jobs")
async def favorites(db: DBSession, current_user: CurrentUser) -> JobListResponse:
    jobs = await jobService.list_favorites(db, current_user.id)
    return JobListResponse(data=_jobs_out(jobs))


@router.get("/{job_id}", response_model=JobResponse, summary="Job detail")
async def get_job(db: DBSession, job_id: uuid.UUID) -> JobResponse:
    job = await jobService.load_job(db, job_id)
    return JobResponse(data=JobOut.model_validate(job))


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@router.delete("/{job_id}", response_model=MessageResponse, summary="Delete my open job")
async def delete_job(
    db: DBSession,
    current_user: CurrentUser,
    job_id: uuid.UUID,
) -> MessageResponse:
    await jobService.delete_job(db, job_id, current_user)
    return MessageResponse(message="Job deleted")


@router.post("/{job_id}/accept", response_model=JobResponse, summary="Accept a job")
async def accept_job(
    db: DBSession,
    current_user: CurrentUser,
    job_id: uuid.UUID,
) -> JobResponse:
    job = await jobService.accept_job(db, job_id, current_user)
    return JobResponse(data=JobOut.model_validate(job))


@router.post("/{job_id}/complete", response_model=JobResponse, summary="Complete a job")
async def complete_job(
    db: DBSession,
    current_user: CurrentUser,
    job_id: uuid.UUID,
) -> JobResponse:
    job = await jobService.complete_job(db, job_id, current_user)
    return JobResponse(data=JobOut.model_validate(job))


@router.post("/{job_id}/review", response_model=JobResponse, summary="Rate the worker")
async def review_job(
    db: DBSession,
    current_user: CurrentUser,
    job_id: uuid.UUID,
    body: ReviewRequest,
) -> JobResponse:
    job = await jobService.review_job(db, job_id, current_user, body.rating)
    return JobResponse(data=JobOut.model_validate(job))


@router.post(
    "/{job_id}/favorite",
    response_model=FavoriteToggleResponse,
    summary="Toggle a favorite",
)
async def toggle_favorite(
    db: DBSession,
    current_user: CurrentUser,
    job_id: uuid.UUID,
) -> FavoriteToggleResponse:
    is_favorite, ids = await jobService.toggle_favorite(db, current_user.id, job_id)
    return FavoriteToggleResponse(
        data=FavoriteToggleData(is_favorite=is_favorite, favorites=ids)
    )
