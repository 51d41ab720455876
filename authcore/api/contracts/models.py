"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    details: list[str] | None = Field(
        default=None, description="Rule-level guidance, e.g. password policy"
    )


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class StatusResponse(BaseModel):
    """Generic acknowledgement payload."""

    status: Literal["ok"]


class LoginResponse(BaseModel):
    """Successful login payload; the session id travels in a cookie."""

    user_id: str
    username: str
    role: str
    expires_at: datetime


class UserSummaryResponse(BaseModel):
    """User listing item without credential material."""

    user_id: str
    username: str
    email: str | None
    phone: str | None = None
    name: str
    role: str
    status: str
    last_login_at: datetime | None
    created_at: datetime


class MeResponse(BaseModel):
    """Current user endpoint response payload."""

    user: UserSummaryResponse


class UsersListResponse(BaseModel):
    users: list[UserSummaryResponse]


class CreateUserResponse(BaseModel):
    """Created user id plus the one-time reset token for first password setup."""

    user_id: str
    reset_token: str
    reset_token_expires_at: datetime


class ResetTokenResponse(BaseModel):
    reset_token: str
    reset_token_expires_at: datetime
