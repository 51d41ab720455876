"""Typed failures raised by the credential and session services."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from authcore.auth.policy import PolicyViolation


class AuthError(Exception):
    """Base class for domain failures the HTTP layer maps to responses."""

    code = "AUTH_ERROR"


class InvalidCredentialsReason(StrEnum):
    """Internal cause of a credentials failure. Never shown to callers."""

    UNKNOWN_IDENTIFIER = "unknown_identifier"
    WRONG_PASSWORD = "wrong_password"


class InvalidCredentialsError(AuthError):
    code = "INVALID_CREDENTIALS"

    def __init__(self, reason: InvalidCredentialsReason) -> None:
        super().__init__("Invalid credentials")
        self.reason = reason


class AccountLockedError(AuthError):
    code = "ACCOUNT_LOCKED"

    def __init__(self, locked_until: datetime) -> None:
        super().__init__("Account locked")
        self.locked_until = locked_until


class SessionInvalidError(AuthError):
    code = "SESSION_INVALID"

    def __init__(self) -> None:
        super().__init__("Session is missing or expired")


class ResetTokenError(AuthError):
    """Common parent for reset token redemption failures."""


class InvalidTokenError(ResetTokenError):
    code = "INVALID_TOKEN"

    def __init__(self) -> None:
        super().__init__("Invalid reset token")


class TokenAlreadyUsedError(ResetTokenError):
    code = "TOKEN_ALREADY_USED"

    def __init__(self) -> None:
        super().__init__("Reset token already used")


class TokenExpiredError(ResetTokenError):
    code = "TOKEN_EXPIRED"

    def __init__(self) -> None:
        super().__init__("Reset token expired")


class WeakPasswordError(AuthError):
    code = "WEAK_PASSWORD"

    def __init__(self, violations: "list[PolicyViolation]") -> None:
        super().__init__("Password does not meet policy")
        self.violations = list(violations)


class UserNotFoundError(AuthError):
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class UserConflictError(AuthError):
    code = "USER_CONFLICT"

    def __init__(self, field: str) -> None:
        super().__init__(f"A user with this {field} already exists")
        self.field = field


class StoreError(Exception):
    """Infrastructure failure in a backing store; not a domain outcome."""


class RecordNotFoundError(StoreError):
    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id
