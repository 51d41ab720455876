"""JSON audit logging for credential events, keyed by request correlation id.

Log calls pass domain context through ``extra``. Only the names in
``AUDIT_FIELDS`` reach the output, and credential material is masked even
when a caller passes it by mistake.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

CORRELATION_ID_CTX: ContextVar[str] = ContextVar("correlation_id", default="")

AUDIT_FIELDS = (
    "event",
    "user_id",
    "admin_user_id",
    "reason",
    "session_id",
    "path",
    "method",
    "status_code",
)

SECRET_FIELDS = frozenset(
    {"password", "new_password", "current_password", "password_hash", "raw_token", "token"}
)

REDACTED = "[redacted]"


def mask_session_id(session_id: str) -> str:
    """Keep a short prefix so log lines about one session can be correlated."""
    if len(session_id) <= 8:
        return REDACTED
    return f"{session_id[:6]}..."


def audit_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Collect audit context from ``record`` with secrets masked."""
    fields: dict[str, Any] = {}
    for key in AUDIT_FIELDS:
        value = getattr(record, key, None)
        if value in (None, ""):
            continue
        if key == "session_id":
            value = mask_session_id(str(value))
        fields[key] = value
    for key in SECRET_FIELDS:
        if getattr(record, key, None) is not None:
            fields[key] = REDACTED
    return fields


class JsonLogFormatter(logging.Formatter):
    """Render one JSON object per record."""

    def __init__(self, service: str = "authcore") -> None:
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": self._service,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        correlation_id = CORRELATION_ID_CTX.get()
        if correlation_id:
            payload["correlation_id"] = correlation_id
        payload.update(audit_fields(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", *, service: str = "authcore") -> None:
    """Route all loggers through a single stdout JSON handler."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter(service))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(handler)


def set_correlation_id(correlation_id: str) -> None:
    CORRELATION_ID_CTX.set(correlation_id)
