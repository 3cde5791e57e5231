"""
Pydantic v2 schemas for profile endpoints.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from src.api.schemas.common import CamelModel, UserOut


class UpdateProfileRequest(CamelModel):
    name: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=20)
    bio: Optional[str] = Field(default=None, max_length=1000)
    profile_photo: Optional[str] = None


class ProfileStatsOut(CamelModel):
    jobs_posted: Optional[int] = None
    jobs_completed: int
    average_rating: float


class ProfileData(CamelModel):
    user: UserOut
    stats: ProfileStatsOut


class ProfileResponse(CamelModel):
    data: ProfileData


class PublicUserOut(CamelModel):
    """Another student's profile.  No email or contact details."""

    id: uuid.UUID
    name: str
    bio: str = ""
    profile_photo: str = ""
    rating: float = 0.0
    rating_count: int = 0
    created_at: datetime


class PublicProfileData(CamelModel):
    user: PublicUserOut
    stats: ProfileStatsOut


class PublicProfileResponse(CamelModel):
    data: PublicProfileData


class UserResponse(CamelModel):
    data: UserOut
