"""
Pydantic v2 schemas for the job board API.

These schemas define the public contract for posting, browsing, accepting,
completing and reviewing jobs.  Poster and worker are embedded as compact
user summaries.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, Field

from src.api.schemas.common import CamelModel, PaginationMeta, UserSummary
from src.models.job import ExpectedDuration, JobCategory, JobStatus


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class CreateJobRequest(CamelModel):
    """Request body for POST /jobs.

    ``price`` is the web client's name for the payment amount.
    """

    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    price: Optional[float] = Field(default=None, description="Payment amount")
    category: Optional[str] = None
    expected_duration: Optional[str] = None
    deadline: Optional[datetime] = None


class ReviewRequest(CamelModel):
    rating: Optional[int] = Field(default=None, description="Worker rating, 1 to 5")


class AdminUpdateJobRequest(CamelModel):
    """Request body for PUT /admin/jobs/{id}."""

    status: Optional[str] = None
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    payment_amount: Optional[float] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class JobOut(CamelModel):
    """A job as shown on the board and in job details."""

    id: uuid.UUID
    title: str
    description: str
    payment_amount: float
    category: JobCategory
    expected_duration: ExpectedDuration
    deadline: Optional[datetime] = None
    status: JobStatus
    worker_rating: Optional[int] = None
    posted_by: Optional[UserSummary] = Field(
        default=None, validation_alias=AliasChoices("poster", "postedBy")
    )
    accepted_by: Optional[UserSummary] = Field(
        default=None, validation_alias=AliasChoices("worker", "acceptedBy")
    )
    created_at: datetime
    updated_at: datetime


class JobResponse(CamelModel):
    data: JobOut


class JobListResponse(CamelModel):
    data: list[JobOut]


class MyJobsData(CamelModel):
    posted: list[JobOut]
    accepted: list[JobOut]


class MyJobsResponse(CamelModel):
    data: MyJobsData


class FavoriteToggleData(CamelModel):
    is_favorite: bool
    favorites: list[uuid.UUID]


class FavoriteToggleResponse(CamelModel):
    data: FavoriteToggleData


class JobPageData(CamelModel):
    items: list[JobOut]
    meta: PaginationMeta


class JobPageResponse(CamelModel):
    data: JobPageData
