"""
Pydantic v2 schemas for the admin dashboard and superadmin tools.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from src.api.schemas.common import CamelModel, PaginationMeta, UserOut


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

class OverviewOut(CamelModel):
    total_users: int
    active_users: int
    total_jobs: int
    open_jobs: int
    in_progress_jobs: int
    completed_jobs: int
    recent_users: int
    recent_jobs: int


class StatsData(CamelModel):
    overview: OverviewOut
    jobs_by_category: dict[str, int]
    jobs_by_status: dict[str, int]


class StatsResponse(CamelModel):
    data: StatsData


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserPageData(CamelModel):
    items: list[UserOut]
    meta: PaginationMeta


class UserPageResponse(CamelModel):
    data: UserPageData


class UserStatsOut(CamelModel):
    jobs_posted: int
    jobs_completed: int


class UserDetailData(CamelModel):
    user: UserOut
    stats: UserStatsOut


class UserDetailResponse(CamelModel):
    data: UserDetailData


class AdminUpdateUserRequest(CamelModel):
    name: Optional[str] = Field(default=None, max_length=200)
    role: Optional[str] = None
    is_active: Optional[bool] = None
    phone: Optional[str] = Field(default=None, max_length=20)
    bio: Optional[str] = Field(default=None, max_length=1000)


class AdminUserResponse(CamelModel):
    data: UserOut
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Superadmin
# ---------------------------------------------------------------------------

class BroadcastRequest(CamelModel):
    message: Optional[str] = Field(default=None, max_length=2000)
    type: str = "info"


class AnnouncementOut(CamelModel):
    message: str
    type: str
    timestamp: datetime


class BroadcastData(CamelModel):
    online_count: int
    announcement: AnnouncementOut


class BroadcastResponse(CamelModel):
    data: BroadcastData
    message: str


class SetRoleRequest(CamelModel):
    role: Optional[str] = None


class ImpersonateData(CamelModel):
    token: str
    user_id: uuid.UUID
    name: str
    role: str
    expires_in_minutes: int


class ImpersonateResponse(CamelModel):
    data: ImpersonateData
