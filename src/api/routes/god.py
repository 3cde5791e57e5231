"""
Superadmin API Routes
=====================

Routes:
  POST   /api/god/broadcast             -- system_announcement to every client
  POST   /api/god/users/{id}/verify     -- Force email verification
  PUT    /api/god/users/{id}/role       -- Set role to user or admin
  POST   /api/god/impersonate/{id}      -- Short-lived token acting as the user
  DELETE /api/god/users/{id}            -- Permanent delete
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter

from src.api.deps import DBSession, SuperAdminUser
from src.api.schemas.admin import (
    AdminUserResponse,
    AnnouncementOut,
    BroadcastData,
    BroadcastRequest,
    BroadcastResponse,
    ImpersonateData,
    ImpersonateResponse,
    SetRoleRequest,
)
from src.api.schemas.common import MessageResponse, UserOut
from src.core.config import settings
from src.services import adminService

router = APIRouter(prefix="/god", tags=["Superadmin"])


@router.post("/broadcast", response_model=BroadcastResponse, summary="Broadcast an announcement")
async def broadcast(superadmin: SuperAdminUser, body: BroadcastRequest) -> BroadcastResponse:
    result = await adminService.broadcast_announcement(body.message, body.type)
    online = result["online_count"]
    return BroadcastResponse(
        data=BroadcastData(
            online_count=online,
            announcement=AnnouncementOut(**result["payload"]),
        ),
        message=f"Broadcast sent to {online} connected users",
    )


@router.post("/users/{user_id}/verify", response_model=AdminUserResponse, summary="Force verify")
async def force_verify(
    db: DBSession,
    superadmin: SuperAdminUser,
    user_id: uuid.UUID,
) -> AdminUserResponse:
    user = await adminService.force_verify(db, user_id)
    return AdminUserResponse(
        data=UserOut.model_validate(user),
        message=f"User {user.name} verified successfully",
    )


@router.put("/users/{user_id}/role", response_model=AdminUserResponse, summary="Set role")
async def set_role(
    db: DBSession,
    superadmin: SuperAdminUser,
    user_id: uuid.UUID,
    body: SetRoleRequest,
) -> AdminUserResponse:
    user = await adminService.set_role(db, user_id, body.role)
    return AdminUserResponse(
        data=UserOut.model_validate(user),
        message=f"User {user.name} role updated to {user.role.value}",
    )


@router.post("/impersonate/{user_id}", response_model=ImpersonateResponse, summary="Impersonate")
async def impersonate(
    db: DBSession,
    superadmin: SuperAdminUser,
    user_id: uuid.UUID,
) -> ImpersonateResponse:
    user, token = await adminService.impersonate(db, user_id, superadmin)
    return ImpersonateResponse(
        data=ImpersonateData(
            token=token,
            user_id=user.id,
            name=user.name,
            role=user.role.value,
            expires_in_minutes=settings.impersonation_token_expire_minutes,
        )
    )


@router.delete("/users/{user_id}", response_model=MessageResponse, summary="Permanently delete")
async def hard_delete(
    db: DBSession,
    superadmin: SuperAdminUser,
    user_id: uuid.UUID,
) -> MessageResponse:
    await adminService.hard_delete_user(db, user_id)
    return MessageResponse(message="User permanently deleted")
