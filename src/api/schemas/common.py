"""
Shared Pydantic v2 building blocks for API schemas.

All JSON responses use camelCase field names via Pydantic's alias
generator to match the web client convention.  Responses wrap their
payload in ``{"data": ...}``; errors are ``{"message": ...}``.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.models.user import UserRole


def _to_camel(snake: str) -> str:
    """Convert a snake_case string to camelCase."""
    parts = snake.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class CamelModel(BaseModel):
    """Base model that serializes field names to camelCase in JSON."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=_to_camel,
    )


class PaginationMeta(CamelModel):
    """Pagination metadata returned with list responses."""

    page: int = Field(ge=1, description="Current page number (1-indexed)")
    page_size: int = Field(ge=1, description="Items per page")
    total_items: int = Field(ge=0, description="Total matching items")
    total_pages: int = Field(ge=0, description="Total pages")

    @classmethod
    def from_result(cls, result) -> "PaginationMeta":
        return cls(
            page=result.page,
            page_size=result.page_size,
            total_items=result.total_items,
            total_pages=result.total_pages,
        )


class MessageResponse(CamelModel):
    """Plain acknowledgement."""

    message: str


class UserSummary(CamelModel):
    """Compact user reference embedded in jobs, reports and chats."""

    id: uuid.UUID
    name: str
    email: Optional[str] = None
    profile_photo: str = ""


class UserOut(CamelModel):
    """Full user record for the account owner and admins."""

    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    phone: str = ""
    bio: str = ""
    profile_photo: str = ""
    rating: float = 0.0
    rating_count: int = 0
    is_active: bool = True
    is_verified: bool = False
    is_banned: bool = False
    created_at: datetime
