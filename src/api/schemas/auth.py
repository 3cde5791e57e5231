"""
Pydantic v2 schemas for authentication API endpoints.

Request bodies accept both snake_case and camelCase keys.  Missing fields
default to empty strings so the service layer can answer with its own
"All fields required" message instead of a generic validation error.
"""

from __future__ import annotations

from pydantic import Field

from src.api.schemas.common import CamelModel, UserOut


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(CamelModel):
    """Request body for POST /auth/register."""

    name: str = Field("", max_length=200)
    email: str = Field("", max_length=320, description="College email address")
    password: str = Field("", max_length=128)


class VerifyOtpRequest(CamelModel):
    """Request body for POST /auth/verify-otp."""

    email: str = ""
    otp: str = Field("", max_length=6, description="Six-digit code from the email")


class ResendOtpRequest(CamelModel):
    email: str = ""


class LoginRequest(CamelModel):
    """Request body for POST /auth/login."""

    email: str = ""
    password: str = ""


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class RegisterData(CamelModel):
    email: str
    message: str = "OTP sent to email"


class RegisterResponse(CamelModel):
    data: RegisterData


class AuthData(CamelModel):
    """Token plus the signed-in user."""

    token: str
    user: UserOut


class AuthResponse(CamelModel):
    data: AuthData


class MeResponse(CamelModel):
    data: UserOut
