"""Public API response contracts."""

from authcore.api.contracts.models import (
    ApiErrorResponse,
    CreateUserResponse,
    HealthResponse,
    LoginResponse,
    MeResponse,
    ResetTokenResponse,
    StatusResponse,
    UserSummaryResponse,
    UsersListResponse,
)

__all__ = [
    "ApiErrorResponse",
    "CreateUserResponse",
    "HealthResponse",
    "LoginResponse",
    "MeResponse",
    "ResetTokenResponse",
    "StatusResponse",
    "UserSummaryResponse",
    "UsersListResponse",
]
