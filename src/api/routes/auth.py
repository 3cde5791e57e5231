"""
Authentication API routes
=========================

Routes:
  POST /api/auth/register    -- create an unverified account, email an OTP
  POST /api/auth/verify-otp  -- activate the account, returns a token
  POST /api/auth/resend-otp  -- send a fresh OTP
  POST /api/auth/login       -- authenticate with email & password
  GET  /api/auth/me          -- the currently authenticated user
"""

from __future__ import annotations

from fastapi import APIRouter, status

from src.api.deps import CurrentUser, DBSession
from src.api.schemas.auth import (
    AuthData,
    AuthResponse,
    LoginRequest,
    MeResponse,
    RegisterData,
    RegisterRequest,
    RegisterResponse,
    ResendOtpRequest,
    VerifyOtpRequest,
)
from src.api.schemas.common import MessageResponse, UserOut
from src.services import auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register with a college email",
)
async def register(body: RegisterRequest, db: DBSession) -> RegisterResponse:
    user = await auth_service.register(db, body.name, body.email, body.password)
    return RegisterResponse(data=RegisterData(email=user.email))


@router.post(
    "/verify-otp",
    response_model=AuthResponse,
    summary="Verify the emailed OTP",
)
async def verify_otp(body: VerifyOtpRequest, db: DBSession) -> AuthResponse:
    user, token = await auth_service.verify_otp(db, body.email, body.otp)
    return AuthResponse(data=AuthData(token=token, user=UserOut.model_validate(user)))


@router.post(
    "/resend-otp",
    response_model=MessageResponse,
    summary="Send a new OTP",
)
async def resend_otp(body: ResendOtpRequest, db: DBSession) -> MessageResponse:
    await auth_service.resend_otp(db, body.email)
    return MessageResponse(message="OTP resent")


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Authenticate with email and password",
)
async def login(body: LoginRequest, db: DBSession) -> AuthResponse:
    user, token = await auth_service.login(db, body.email, body.password)
    return AuthResponse(data=AuthData(token=token, user=UserOut.model_validate(user)))


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Get the current user",
)
async def me(current_user: CurrentUser) -> MeResponse:
    return MeResponse(data=UserOut.model_validate(current_user))
