"""Administrator-issued, single-use password reset tokens."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from authcore.auth.errors import (
    InvalidTokenError,
    ResetTokenError,
    TokenAlreadyUsedError,
    TokenExpiredError,
)
from authcore.auth.lockout import LockoutTracker
from authcore.auth.models import IssuedResetToken, PasswordResetToken
from authcore.auth.policy import DEFAULT_POLICY, CredentialPolicy
from authcore.auth.stores import PasswordHasher, PasswordResetTokenStore, UserStore
from authcore.core.config import AuthConfig
from authcore.core.security import hash_token, new_raw_token, new_record_id

LOGGER = logging.getLogger(__name__)


class PasswordResetService:
    """Issue hashed-at-rest reset tokens and redeem them exactly once.

    ``hasher`` may be omitted for a degenerate mode in which redemption
    only consumes the token; production wiring always supplies one.
    """

    def __init__(
        self,
        users: UserStore,
        tokens: PasswordResetTokenStore,
        config: AuthConfig | None = None,
        hasher: PasswordHasher | None = None,
        policy: CredentialPolicy = DEFAULT_POLICY,
    ) -> None:
        self._users = users
        self._tokens = tokens
        self._config = config or AuthConfig()
        self._hasher = hasher
        self._policy = policy

    @property
    def policy(self) -> CredentialPolicy:
        return self._policy

    def issue_token(
        self, issuing_admin_id: str, target_user_id: str, now: datetime
    ) -> IssuedResetToken:
        """Persist a new token record and return the raw token once.

        The caller is expected to have resolved the target user already.
        """
        raw_token = new_raw_token()
        expires_at = now + self._config.reset_token_ttl
        self._tokens.create(
            PasswordResetToken(
                token_id=new_record_id(),
                user_id=target_user_id,
                created_by_user_id=issuing_admin_id,
                token_hash=hash_token(raw_token),
                expires_at=expires_at,
                used_at=None,
                created_at=now,
            )
        )
        LOGGER.info(
            "reset_token_issued",
            extra={
                "event": "auth.reset_token",
                "user_id": target_user_id,
                "admin_user_id": issuing_admin_id,
            },
        )
        return IssuedResetToken(raw_token=raw_token, expires_at=expires_at)

    def reset_password(self, raw_token: str, new_password: str, now: datetime) -> None:
        """Redeem ``raw_token`` and overwrite the target user's password.

        Token validity is checked before the password policy, and the policy
        before the slow hash. Raises ``InvalidTokenError``,
        ``TokenAlreadyUsedError``, ``TokenExpiredError`` or
        ``WeakPasswordError``.
        """
        try:
            record = self._redeemable_record(raw_token, now)
        except ResetTokenError as exc:
            LOGGER.info(
                "password_reset_rejected",
                extra={"event": "auth.reset", "reason": exc.code},
            )
            raise

        self._policy.ensure(new_password)

        if self._hasher is not None:
            fields: dict[str, Any] = {"password_hash": self._hasher.hash(new_password)}
            fields.update(LockoutTracker.on_reset())
            self._users.update(record.user_id, fields)

        if not self._tokens.mark_used(record.token_id, now):
            # Another redemption marked the token between our read and write.
            LOGGER.warning(
                "password_reset_rejected",
                extra={
                    "event": "auth.reset",
                    "user_id": record.user_id,
                    "reason": TokenAlreadyUsedError.code,
                },
            )
            raise TokenAlreadyUsedError()

        LOGGER.info(
            "password_reset_completed",
            extra={"event": "auth.reset", "user_id": record.user_id},
        )

    def _redeemable_record(self, raw_token: str, now: datetime) -> PasswordResetToken:
        record = self._tokens.get_by_token_hash(hash_token(raw_token))
        if record is None:
            raise InvalidTokenError()
        if record.used_at is not None:
            raise TokenAlreadyUsedError()
        if record.expires_at < now:
            raise TokenExpiredError()
        return record
