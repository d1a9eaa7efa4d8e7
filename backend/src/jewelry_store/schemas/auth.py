"""Pydantic schemas for admin authentication."""
from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field

from jewelry_store.schemas.common import CamelModel


class LoginRequest(CamelModel):
    """Admin credentials."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class AdminProfile(CamelModel):
    """Admin data safe to return to the dashboard."""

    id: UUID
    email: str
    name: str
    role: str
    last_login: datetime | None = None
    created_at: datetime


class LoginResponse(CamelModel):
    """Issued access token plus the authenticated admin."""

    token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    admin: AdminProfile


class ChangePasswordRequest(CamelModel):
    """Password rotation payload."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)
