"""HTTP middleware that resolves sessions on protected API routes."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from authcore.api.errors import ApiErrorCode
from authcore.api.http_setup import error_response
from authcore.auth.errors import SessionInvalidError, StoreError
from authcore.auth.models import UserRole, utcnow
from authcore.auth.service import AuthService

LOGGER = logging.getLogger(__name__)

SESSION_HEADER = "x-session-id"

PUBLIC_PATHS = frozenset(
    {
        "/api/health",
        "/api/auth/login",
        "/api/auth/logout",
        "/api/auth/reset/request",
        "/api/auth/reset/confirm",
    }
)


def session_id_from_request(request: Request, cookie_name: str) -> str:
    """Read session id from the explicit header, then from the cookie."""
    header_value = (request.headers.get(SESSION_HEADER) or "").strip()
    if header_value:
        return header_value
    return (request.cookies.get(cookie_name) or "").strip()


def create_session_middleware(service: AuthService, *, cookie_name: str) -> Callable:
    """Create middleware that attaches the session owner to request state."""

    async def session_middleware(request: Request, call_next: Callable):
        """Reject protected API calls without a valid session."""
        path = request.url.path
        if not path.startswith("/api/") or path in PUBLIC_PATHS:
            return await call_next(request)

        session_id = session_id_from_request(request, cookie_name)
        try:
            user = await run_in_threadpool(service.resolve_session, session_id, utcnow())
        except SessionInvalidError:
            return error_response(
                401,
                {"error_code": ApiErrorCode.AUTH_UNAUTHORIZED, "message": "Unauthorized"},
            )
        except StoreError:
            LOGGER.exception(
                "session_lookup_failed",
                extra={"path": path, "method": request.method, "status_code": 503},
            )
            return error_response(
                503,
                {
                    "error_code": ApiErrorCode.STORE_UNAVAILABLE,
                    "message": "Storage is temporarily unavailable",
                },
            )

        if path.startswith("/api/admin/") and user.role != UserRole.ADMIN:
            return error_response(
                403,
                {"error_code": ApiErrorCode.AUTH_FORBIDDEN, "message": "Forbidden"},
            )

        request.state.user = user
        request.state.session_id = session_id
        return await call_next(request)

    return session_middleware
