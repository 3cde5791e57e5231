"""
Profile API Routes
==================

Routes:
  GET    /api/profile            -- My profile with job stats
  PUT    /api/profile            -- Edit name, phone, bio, photo
  DELETE /api/profile            -- Delete my account
  GET    /api/profile/{user_id}  -- Public profile of another user
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter

from src.api.deps import CurrentUser, DBSession
from src.api.schemas.common import MessageResponse, UserOut
from src.api.schemas.profile import (
    ProfileData,
    ProfileResponse,
    ProfileStatsOut,
    PublicProfileData,
    PublicProfileResponse,
    PublicUserOut,
    UpdateProfileRequest,
    UserResponse,
)
from src.services import profileService

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=ProfileResponse, summary="My profile")
async def get_profile(db: DBSession, current_user: CurrentUser) -> ProfileResponse:
    profile = await profileService.get_own_profile(db, current_user.id)
    return ProfileResponse(
        data=ProfileData(
            user=UserOut.model_validate(profile.user),
            stats=ProfileStatsOut.model_validate(profile.stats),
        )
    )


@router.put("", response_model=UserResponse, summary="Edit my profile")
async def update_profile(
    db: DBSession,
    current_user: CurrentUser,
    body: UpdateProfileRequest,
) -> UserResponse:
    user = await profileService.update_profile(
        db,
        current_user,
        name=body.name,
        phone=body.phone,
        bio=body.bio,
        profile_photo=body.profile_photo,
    )
    return UserResponse(data=UserOut.model_validate(user))


@router.delete("", response_model=MessageResponse, summary="Delete my account")
async def delete_account(db: DBSession, current_user: CurrentUser) -> MessageResponse:
    await profileService.delete_account(db, current_user)
    return MessageResponse(message="User deleted")


@router.get(
    "/{user_id}",
    response_model=PublicProfileResponse,
    summary="Public profile",
)
async def get_public_profile(db: DBSession, user_id: uuid.UUID) -> PublicProfileResponse:
    profile = await profileService.get_public_profile(db, user_id)
    return PublicProfileResponse(
        data=PublicProfileData(
            user=PublicUserOut.model_validate(profile.user),
            stats=ProfileStatsOut.model_validate(profile.stats),
        )
    )
