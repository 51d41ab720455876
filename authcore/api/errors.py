"""Shared API error types and the domain-to-HTTP error mapping."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from fastapi import HTTPException

from authcore.auth.errors import (
    AccountLockedError,
    AuthError,
    InvalidCredentialsError,
    ResetTokenError,
    SessionInvalidError,
    UserConflictError,
    UserNotFoundError,
    WeakPasswordError,
)
from authcore.auth.policy import DEFAULT_POLICY, CredentialPolicy


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_UNAUTHORIZED = "AUTH_UNAUTHORIZED"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_ACCOUNT_LOCKED = "AUTH_ACCOUNT_LOCKED"
    AUTH_RESET_TOKEN_INVALID = "AUTH_RESET_TOKEN_INVALID"
    AUTH_WEAK_PASSWORD = "AUTH_WEAK_PASSWORD"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_CONFLICT = "USER_CONFLICT"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self,
        *,
        status_code: int,
        error_code: ApiErrorCode,
        message: str,
        details: list[str] | None = None,
    ) -> None:
        """Build an HTTP exception with standard detail structure."""
        detail: dict[str, Any] = {"error_code": str(error_code), "message": message}
        if details:
            detail["details"] = list(details)
        super().__init__(status_code=status_code, detail=detail)


def to_error_payload(detail: Any, status_code: int) -> dict[str, Any]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        payload: dict[str, Any] = {"error_code": error_code, "message": message}
        if detail.get("details"):
            payload["details"] = [str(item) for item in detail["details"]]
        return payload
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }


def api_error_from_auth_error(
    exc: AuthError, policy: CredentialPolicy = DEFAULT_POLICY
) -> ApiError:
    """Map a domain failure to its public HTTP form.

    Unknown identifiers and wrong passwords share one response, and all
    reset token failures share another.
    """
    if isinstance(exc, InvalidCredentialsError):
        return ApiError(
            status_code=401,
            error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS,
            message="Invalid credentials",
        )
    if isinstance(exc, AccountLockedError):
        return ApiError(
            status_code=423,
            error_code=ApiErrorCode.AUTH_ACCOUNT_LOCKED,
            message="Account is temporarily locked. Try again later or contact an administrator.",
        )
    if isinstance(exc, ResetTokenError):
        return ApiError(
            status_code=400,
            error_code=ApiErrorCode.AUTH_RESET_TOKEN_INVALID,
            message="Invalid or expired reset token",
        )
    if isinstance(exc, WeakPasswordError):
        return ApiError(
            status_code=400,
            error_code=ApiErrorCode.AUTH_WEAK_PASSWORD,
            message="Password does not meet the password policy",
            details=[policy.describe(violation) for violation in exc.violations],
        )
    if isinstance(exc, SessionInvalidError):
        return ApiError(
            status_code=401,
            error_code=ApiErrorCode.AUTH_UNAUTHORIZED,
            message="Unauthorized",
        )
    if isinstance(exc, UserNotFoundError):
        return ApiError(
            status_code=404,
            error_code=ApiErrorCode.USER_NOT_FOUND,
            message="User not found",
        )
    if isinstance(exc, UserConflictError):
        return ApiError(
            status_code=409,
            error_code=ApiErrorCode.USER_CONFLICT,
            message=str(exc),
        )
    return ApiError(
        status_code=400,
        error_code=ApiErrorCode.VALIDATION_ERROR,
        message=str(exc) or "Request failed",
    )
