"""
Authentication service for Campus Gigs.

Handles registration with a college email domain, OTP email verification,
login and JWT token management.  Uses bcrypt for password hashing and
PyJWT for token generation/verification.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.exceptions import AuthenticationError, ForbiddenError, ValidationError
from src.models.base import as_utc, utcnow
from src.models.user import User, UserRole
from src.services import notificationService

# ---------------------------------------------------------------------------
# Password hashing (bcrypt direct usage)
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt."""
    # bcrypt requires bytes; truncate to 72 bytes (bcrypt limit)
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a bcrypt hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.checkpw(pw_bytes, hashed_password.encode("utf-8"))


# ---------------------------------------------------------------------------
# JWT tokens
# ---------------------------------------------------------------------------

def create_access_token(
    user: User,
    *,
    expires_delta: Optional[timedelta] = None,
    impersonator_id: Optional[uuid.UUID] = None,
) -> tuple[str, datetime]:
    """Create a signed access token for ``user``.

    Returns:
        Tuple of (token_string, expiration_datetime).
    """
    now = datetime.now(timezone.utc)
    expires_at = now + (expires_delta or timedelta(days=settings.access_token_expire_days))
    payload = {
        "sub": str(user.id),
        "role": user.role.value,
        "type": "access",
        "exp": expires_at,
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    if impersonator_id is not None:
        payload["imp"] = str(impersonator_id)
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires_at


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired.
        jwt.InvalidTokenError: If the token is otherwise invalid.
    """
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
    )


# ---------------------------------------------------------------------------
# OTP helpers
# ---------------------------------------------------------------------------

def generate_otp() -> str:
    """Six-digit numeric one-time password."""
    return f"{secrets.randbelow(900000) + 100000}"


def is_allowed_email(email: str) -> bool:
    email = email.lower().strip()
    return any(email.endswith(domain) for domain in settings.email_domains)


def _issue_otp(user: User) -> str:
    otp = generate_otp()
    user.otp = otp
    user.otp_expires_at = utcnow() + timedelta(minutes=settings.otp_expire_minutes)
    return otp


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Look up a user by email address."""
    stmt = select(User).where(User.email == email.lower().strip())
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
    """Look up a user by primary key."""
    stmt = select(User).where(User.id == user_id)
    result = await db.execute(stmt)
    return result.scalars().first()


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------

async def register(
    db: AsyncSession,
    name: str,
    email: str,
    password: str,
) -> User:
    """Register an unverified user and email them an OTP.

    Raises:
        ValidationError: Missing fields, disallowed domain, or the email is
            already registered.
    """
    name = (name or "").strip()
    email = (email or "").lower().strip()
    if not name or not email or not password:
        raise ValidationError("All fields required")
    if not is_allowed_email(email):
        raise ValidationError("Use your official college email ID")

    if await get_user_by_email(db, email) is not None:
        raise ValidationError("User already exists")

    user = User(email=email, name=name, password_hash=hash_password(password))
    db.add(user)
    otp = _issue_otp(user)
    await db.flush()

    # Delivery happens in the background; the response does not wait for it.
    notificationService.notify_otp(user.email, otp)
    return user


async def verify_otp(db: AsyncSession, email: str, otp: str) -> tuple[User, str]:
    """Activate the account when ``otp`` matches and has not expired.

    Returns:
        Tuple of (user, access_token).
    """
    user = await get_user_by_email(db, email or "")
    if user is None:
        raise ValidationError("User not found")
    if user.is_verified:
        raise ValidationError("User already verified")

    expires_at = as_utc(user.otp_expires_at)
    if (
        user.otp is None
        or user.otp != (otp or "").strip()
        or expires_at is None
        or expires_at < utcnow()
    ):
        raise ValidationError("Invalid or expired OTP")

    user.is_verified = True
    user.otp = None
    user.otp_expires_at = None
    await db.flush()

    notificationService.notify_welcome(user.email, user.name)
    token, _ = create_access_token(user)
    return user, token


async def resend_otp(db: AsyncSession, email: str) -> None:
    if not email:
        raise ValidationError("Email required")
    user = await get_user_by_email(db, email)
    if user is None:
        raise ValidationError("User not found")
    if user.is_verified:
        raise ValidationError("User already verified")

    otp = _issue_otp(user)
    await db.flush()
    notificationService.notify_otp(user.email, otp)


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """Authenticate a user with email and password.

    Raises:
        ValidationError: Unknown email, unverified account or wrong password.
        ForbiddenError: Banned or deactivated accounts.
    """
    user = await get_user_by_email(db, email or "")
    if user is None:
        raise ValidationError("User not found. Please create an account.")
    if not user.is_verified:
        raise ValidationError("Please verify your email first")
    if user.is_banned:
        raise ForbiddenError("Account has been banned")
    if not user.is_active:
        raise ForbiddenError("Account has been deactivated")
    if not verify_password(password or "", user.password_hash):
        raise ValidationError("Invalid password")

    token, _ = create_access_token(user)
    return user, token


async def get_current_user(
    db: AsyncSession,
    token: str,
) -> User:
    """Decode a JWT access token and return the corresponding user.

    Raises:
        AuthenticationError: If the token is invalid, expired, or the user
            is gone or no longer allowed in.
    """
    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Access token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Not authorized, token failed")

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except (ValueError, AttributeError):
        raise AuthenticationError("Invalid token subject")

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    if user.is_banned or not user.is_active:
        raise AuthenticationError("Account is no longer active")
    return user


def require_role(user: User, *roles: UserRole) -> None:
    if user.role not in roles:
        raise ForbiddenError("Not authorized for this action")
