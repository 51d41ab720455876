"""Failed-attempt counting and time-boxed lockout for user accounts."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from authcore.auth.models import User


class LockoutTracker:
    """Compute user-record updates for login outcomes.

    The tracker holds no state of its own; every transition is returned as a
    partial field mapping for a single ``UserStore.update`` call.
    """

    def __init__(self, *, threshold: int, window: timedelta) -> None:
        if window <= timedelta(0):
            raise ValueError("Lockout window must be positive")
        self._threshold = max(1, int(threshold))
        self._window = window

    def locked_until(self, user: User, now: datetime) -> datetime | None:
        """Return the end of an active lockout window, or ``None``."""
        if user.is_locked(now):
            return user.lockout_until
        return None

    def on_failure(self, user: User, now: datetime) -> dict[str, Any]:
        """Increment counter; start lockout when threshold is reached."""
        failed_login_count = user.failed_login_count + 1
        update: dict[str, Any] = {"failed_login_count": failed_login_count}
        if failed_login_count >= self._threshold:
            update["lockout_until"] = now + self._window
        return update

    def on_success(self, now: datetime) -> dict[str, Any]:
        return {
            "failed_login_count": 0,
            "lockout_until": None,
            "last_login_at": now,
        }

    @staticmethod
    def on_reset() -> dict[str, Any]:
        """Clear lockout state after an administrator-mediated reset."""
        return {"failed_login_count": 0, "lockout_until": None}
