"""Authentication service for login, session issuance and session lookup."""

from __future__ import annotations

import logging
from datetime import datetime

from authcore.auth.errors import (
    AccountLockedError,
    InvalidCredentialsError,
    InvalidCredentialsReason,
    SessionInvalidError,
)
from authcore.auth.lockout import LockoutTracker
from authcore.auth.models import LoginResult, Session, User
from authcore.auth.stores import PasswordHasher, SessionStore, UserStore
from authcore.core.config import AuthConfig
from authcore.core.security import new_session_id

LOGGER = logging.getLogger(__name__)


class AuthService:
    """Authenticate identifiers and issue server-side sessions."""

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        hasher: PasswordHasher,
        config: AuthConfig | None = None,
    ) -> None:
        """Initialize service dependencies."""
        self._users = users
        self._sessions = sessions
        self._hasher = hasher
        self._config = config or AuthConfig()
        self._lockout = LockoutTracker(
            threshold=self._config.lockout_threshold,
            window=self._config.lockout_window,
        )

    def login(self, identifier: str, password: str, now: datetime) -> LoginResult:
        """Verify credentials, update lockout state and open a session.

        Raises ``InvalidCredentialsError`` for unknown identifiers and wrong
        passwords alike, and ``AccountLockedError`` while a lockout window is
        active. A locked account is rejected before its password is checked.
        """
        user = self.find_user(identifier)
        if user is None:
            LOGGER.info(
                "login_failed",
                extra={
                    "event": "auth.login",
                    "reason": InvalidCredentialsReason.UNKNOWN_IDENTIFIER.value,
                },
            )
            raise InvalidCredentialsError(InvalidCredentialsReason.UNKNOWN_IDENTIFIER)

        locked_until = self._lockout.locked_until(user, now)
        if locked_until is not None:
            LOGGER.info(
                "login_rejected_locked",
                extra={"event": "auth.login", "user_id": user.user_id},
            )
            raise AccountLockedError(locked_until)

        if not self._hasher.verify(password, user.password_hash):
            update = self._lockout.on_failure(user, now)
            self._users.update(user.user_id, update)
            LOGGER.info(
                "login_failed",
                extra={
                    "event": "auth.login",
                    "user_id": user.user_id,
                    "reason": InvalidCredentialsReason.WRONG_PASSWORD.value,
                },
            )
            if "lockout_until" in update:
                LOGGER.warning(
                    "account_locked",
                    extra={"event": "auth.lockout", "user_id": user.user_id},
                )
            raise InvalidCredentialsError(InvalidCredentialsReason.WRONG_PASSWORD)

        self._users.update(user.user_id, self._lockout.on_success(now))
        session = self._sessions.create(
            Session(
                session_id=new_session_id(),
                user_id=user.user_id,
                created_at=now,
                expires_at=now + self._config.session_ttl,
            )
        )
        LOGGER.info(
            "login_succeeded",
            extra={
                "event": "auth.login",
                "user_id": user.user_id,
                "session_id": session.session_id,
            },
        )
        return LoginResult(
            user_id=user.user_id,
            session_id=session.session_id,
            expires_at=session.expires_at,
        )

    def find_user(self, identifier: str) -> User | None:
        """Resolve an identifier by email when it contains ``@``, else by username."""
        key = identifier.strip()
        if not key:
            return None
        if "@" in key:
            return self._users.get_by_email(key)
        return self._users.get_by_username(key)

    def get_user(self, user_id: str) -> User | None:
        return self._users.get_by_id(user_id)

    def logout(self, session_id: str | None) -> None:
        """Delete the session if one was supplied."""
        if not session_id:
            return
        self._sessions.delete_by_id(session_id)
        LOGGER.info(
            "logout", extra={"event": "auth.logout", "session_id": session_id}
        )

    def resolve_session(self, session_id: str | None, now: datetime) -> User:
        """Return the owner of a valid session or raise ``SessionInvalidError``."""
        if not session_id:
            raise SessionInvalidError()
        session = self._sessions.get_by_id(session_id)
        if session is None or not session.is_valid(now):
            raise SessionInvalidError()
        user = self._users.get_by_id(session.user_id)
        if user is None:
            raise SessionInvalidError()
        return user
