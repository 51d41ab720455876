"""HTTP middleware and exception handler wiring for FastAPI apps."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from authcore.api.contracts import ApiErrorResponse
from authcore.api.errors import ApiErrorCode, api_error_from_auth_error, to_error_payload
from authcore.auth.errors import AuthError, StoreError
from authcore.core.config import AppConfig
from authcore.core.logging import set_correlation_id


def error_response(status_code: int, payload: dict[str, Any]) -> JSONResponse:
    """Render the stable error envelope."""
    body = ApiErrorResponse(
        error_code=str(payload["error_code"]),
        message=str(payload["message"]),
        details=payload.get("details"),
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
    )


def register_http_middleware(app: FastAPI, *, config: AppConfig, logger: Any) -> None:
    """Attach common security and observability middleware to an app."""

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                parsed_length = int(content_length)
            except ValueError:
                parsed_length = 0
            if parsed_length > config.security.request_max_bytes:
                return error_response(
                    413,
                    {
                        "error_code": ApiErrorCode.REQUEST_TOO_LARGE,
                        "message": (
                            "Request size exceeds configured limit "
                            f"({config.security.request_max_bytes} bytes)."
                        ),
                    },
                )
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        correlation_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or uuid.uuid4().hex
        )
        set_correlation_id(correlation_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        logger.info(
            "request_completed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
            },
        )
        return response


def register_exception_handlers(app: FastAPI, *, logger: Any) -> None:
    """Attach API exception handlers that return stable error contracts."""

    @app.exception_handler(HTTPException)
    async def handle_http_exception(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        payload = to_error_payload(exc.detail, exc.status_code)
        logger.warning(
            "http_exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
            },
        )
        return error_response(exc.status_code, payload)

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        api_error = api_error_from_auth_error(exc)
        logger.info(
            "auth_error",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": api_error.status_code,
                "reason": exc.code,
            },
        )
        return error_response(
            api_error.status_code,
            to_error_payload(api_error.detail, api_error.status_code),
        )

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.error(
            "store_error",
            exc_info=exc,
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": 503,
            },
        )
        return error_response(
            503,
            {
                "error_code": ApiErrorCode.STORE_UNAVAILABLE,
                "message": "Storage is temporarily unavailable",
            },
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        logger.warning(
            "validation_exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": 422,
            },
        )
        return error_response(
            422,
            {"error_code": ApiErrorCode.VALIDATION_ERROR, "message": str(exc)},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.exception(
            "unexpected_exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": 500,
            },
        )
        return error_response(
            500,
            {
                "error_code": ApiErrorCode.INTERNAL_SERVER_ERROR,
                "message": "Internal server error",
            },
        )
