"""Account flows: administrator provisioning and self-service profile changes."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any

from authcore.auth.errors import (
    InvalidCredentialsError,
    InvalidCredentialsReason,
    UserConflictError,
    UserNotFoundError,
)
from authcore.auth.models import (
    CREDENTIAL_FIELDS,
    IssuedResetToken,
    User,
    UserRole,
    UserStatus,
)
from authcore.auth.reset import PasswordResetService
from authcore.auth.stores import PasswordHasher, UserStore
from authcore.core.security import new_record_id

LOGGER = logging.getLogger(__name__)


class AccountService:
    """Create accounts, issue reset tokens and apply profile changes."""

    def __init__(
        self,
        users: UserStore,
        hasher: PasswordHasher,
        reset_service: PasswordResetService,
    ) -> None:
        self._users = users
        self._hasher = hasher
        self._reset_service = reset_service

    def create_user(
        self,
        *,
        admin_id: str,
        username: str,
        name: str,
        email: str | None,
        role: UserRole,
        now: datetime,
    ) -> tuple[User, IssuedResetToken]:
        """Create a user with an undisclosed random password.

        The returned reset token is how the new user sets a first password.
        """
        username = username.strip()
        email = email.strip() if email else None
        if self._users.get_by_username(username) is not None:
            raise UserConflictError("username")
        if email and self._users.get_by_email(email) is not None:
            raise UserConflictError("email")

        created = self._users.create(
            User(
                user_id=new_record_id(),
                username=username,
                email=email,
                name=name.strip(),
                role=role,
                status=UserStatus.ACTIVE,
                password_hash=self._hasher.hash(secrets.token_urlsafe(24)),
                created_at=now,
            )
        )
        issued = self._reset_service.issue_token(admin_id, created.user_id, now)
        LOGGER.info(
            "user_created",
            extra={
                "event": "admin.user_created",
                "user_id": created.user_id,
                "admin_user_id": admin_id,
            },
        )
        return created, issued

    def issue_reset_for_user(
        self, *, admin_id: str, user_id: str, now: datetime
    ) -> IssuedResetToken:
        if self._users.get_by_id(user_id) is None:
            raise UserNotFoundError(user_id)
        return self._reset_service.issue_token(admin_id, user_id, now)

    def get_profile(self, user_id: str) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def update_profile(
        self,
        *,
        user_id: str,
        changes: dict[str, Any],
        current_password: str | None,
    ) -> User:
        """Apply a self-service profile change.

        ``changes`` holds only the fields the caller sent; ``None`` clears
        ``email`` or ``phone``. Identity fields (username, email, phone) need
        ``current_password``. A wrong or missing password raises
        ``InvalidCredentialsError`` without touching the lockout counter.
        """
        user = self.get_profile(user_id)
        if CREDENTIAL_FIELDS.intersection(changes):
            if not current_password or not self._hasher.verify(
                current_password, user.password_hash
            ):
                LOGGER.info(
                    "profile_update_rejected",
                    extra={
                        "event": "account.profile",
                        "user_id": user_id,
                        "reason": InvalidCredentialsReason.WRONG_PASSWORD,
                    },
                )
                raise InvalidCredentialsError(InvalidCredentialsReason.WRONG_PASSWORD)

        fields = dict(changes)
        if "username" in fields:
            fields["username"] = fields["username"].strip()
            other = self._users.get_by_username(fields["username"])
            if other is not None and other.user_id != user_id:
                raise UserConflictError("username")
        if fields.get("email"):
            fields["email"] = fields["email"].strip()
            other = self._users.get_by_email(fields["email"])
            if other is not None and other.user_id != user_id:
                raise UserConflictError("email")
        if fields.get("name"):
            fields["name"] = fields["name"].strip()
        if not fields:
            return user

        updated = self._users.update(user_id, fields)
        LOGGER.info(
            "profile_updated",
            extra={"event": "account.profile", "user_id": user_id},
        )
        return updated

    def list_users(self) -> list[User]:
        return sorted(self._users.list_all(), key=lambda user: user.created_at)

    def bootstrap_admin_user(
        self, *, username: str, password: str, now: datetime
    ) -> User | None:
        """Ensure the configured bootstrap administrator exists.

        Returns the created user, or ``None`` when nothing was done.
        """
        if not password:
            return None
        existing = self._users.get_by_username(username)
        if existing is not None:
            return None

        self._reset_service.policy.ensure(password)
        created = self._users.create(
            User(
                user_id=new_record_id(),
                username=username,
                name=username,
                role=UserRole.ADMIN,
                status=UserStatus.ACTIVE,
                password_hash=self._hasher.hash(password),
                created_at=now,
            )
        )
        LOGGER.info(
            "bootstrap_admin_created",
            extra={"event": "admin.bootstrap", "user_id": created.user_id},
        )
        return created
