"""Collaborator contracts consumed by the credential services.

Implementations must make each single-record write atomic. The services
hold no locks of their own, so a read-then-write sequence (lockout counter,
token redemption) is only as consistent as the backing store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from authcore.auth.models import PasswordResetToken, Session, User


class PasswordHasher(Protocol):
    """Slow, salted, one-way password hash."""

    def hash(self, password: str) -> str: ...

    def verify(self, password: str, stored_hash: str) -> bool: ...


class UserStore(Protocol):
    def get_by_id(self, user_id: str) -> User | None: ...

    def get_by_username(self, username: str) -> User | None: ...

    def get_by_email(self, email: str) -> User | None: ...

    def create(self, user: User) -> User: ...

    def update(self, user_id: str, fields: dict[str, Any]) -> User:
        """Apply partial update; raise ``RecordNotFoundError`` for unknown id."""
        ...

    def list_all(self) -> list[User]: ...


class SessionStore(Protocol):
    def create(self, session: Session) -> Session: ...

    def get_by_id(self, session_id: str) -> Session | None: ...

    def delete_by_id(self, session_id: str) -> None:
        """Delete session; unknown ids are not an error."""
        ...

    def count_expired(self, now: datetime) -> int: ...

    def delete_expired(self, now: datetime) -> int: ...


class PasswordResetTokenStore(Protocol):
    def create(self, record: PasswordResetToken) -> PasswordResetToken: ...

    def get_by_token_hash(self, token_hash: str) -> PasswordResetToken | None: ...

    def mark_used(self, token_id: str, when: datetime) -> bool:
        """Set ``used_at`` only if still unused; return whether this call won."""
        ...

    def count_expired(self, now: datetime) -> int: ...

    def delete_expired(self, now: datetime) -> int:
        """Purge tokens past their retention period, not merely expired ones."""
        ...
