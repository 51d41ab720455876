"""Pydantic models for the credential and session domain."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

IDENTIFIER_MESSAGE = "Identifier must be a valid username or email"
PHONE_PATTERN = r"^\+?[0-9()\-\s.]+$"
PROFILE_FIELDS = ("username", "name", "email", "phone")
# Changing any of these needs the caller's current password.
CREDENTIAL_FIELDS = frozenset({"username", "email", "phone"})


def utcnow() -> datetime:
    """Return timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class UserRole(StrEnum):
    USER = "USER"
    ADMIN = "ADMIN"


class UserStatus(StrEnum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    LOCKED = "LOCKED"


class User(BaseModel):
    """Persisted user identity and credential state."""

    user_id: str
    username: str
    email: str | None = None
    phone: str | None = None
    name: str = ""
    role: UserRole = UserRole.USER
    status: UserStatus = UserStatus.ACTIVE
    password_hash: str
    failed_login_count: int = Field(default=0, ge=0)
    lockout_until: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    def is_locked(self, now: datetime) -> bool:
        """Return whether an active lockout window covers ``now``."""
        return self.lockout_until is not None and self.lockout_until > now


class Session(BaseModel):
    """Server-side proof of authentication."""

    session_id: str
    user_id: str
    created_at: datetime
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class PasswordResetToken(BaseModel):
    """Single-use password reset capability; only the token hash is stored."""

    token_id: str
    user_id: str
    created_by_user_id: str
    token_hash: str
    expires_at: datetime
    used_at: datetime | None = None
    created_at: datetime


class LoginResult(BaseModel):
    """Outcome of a successful login."""

    user_id: str
    session_id: str
    expires_at: datetime


class IssuedResetToken(BaseModel):
    """Raw reset token returned once to the issuing administrator."""

    raw_token: str
    expires_at: datetime


_EMAIL_ADAPTER = TypeAdapter(EmailStr)


def _validated_identifier(value: str) -> str:
    """Trim an identifier and require a valid address when it contains ``@``."""
    value = value.strip()
    if not value:
        raise ValueError(IDENTIFIER_MESSAGE)
    if "@" in value:
        try:
            _EMAIL_ADAPTER.validate_python(value)
        except ValidationError as exc:
            raise ValueError(IDENTIFIER_MESSAGE) from exc
    return value


class LoginRequest(BaseModel):
    """Login request payload."""

    identifier: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("identifier")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        return _validated_identifier(value)


class ResetRequest(BaseModel):
    """Password reset request payload."""

    identifier: str = Field(min_length=1)

    @field_validator("identifier")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        return _validated_identifier(value)


class ResetConfirmRequest(BaseModel):
    """Password reset confirmation payload."""

    token: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class CreateUserRequest(BaseModel):
    """Administrator user creation payload."""

    username: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: EmailStr | None = None
    role: UserRole = UserRole.USER


class UpdateProfileRequest(BaseModel):
    """Self-service profile update.

    Changing ``username``, ``email`` or ``phone`` requires
    ``current_password``. ``email`` and ``phone`` may be sent as ``null``
    to clear them.
    """

    model_config = ConfigDict(extra="forbid")

    username: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = Field(
        default=None, min_length=7, max_length=20, pattern=PHONE_PATTERN
    )
    current_password: str | None = None

    @field_validator("username", "name")
    @classmethod
    def _not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _check_fields(self) -> UpdateProfileRequest:
        changes = self.changes()
        if not changes:
            raise ValueError("At least one profile field must be provided")
        if CREDENTIAL_FIELDS.intersection(changes) and not self.current_password:
            raise ValueError("Current password is required")
        if self.username is None and "username" in self.model_fields_set:
            raise ValueError("username cannot be null")
        if self.name is None and "name" in self.model_fields_set:
            raise ValueError("name cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        """Return only the profile fields the caller actually sent."""
        return {
            key: getattr(self, key)
            for key in PROFILE_FIELDS
            if key in self.model_fields_set
        }
