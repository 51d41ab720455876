"""FastAPI application assembly from configuration and stores."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authcore.api.contracts import HealthResponse
from authcore.api.http_setup import register_exception_handlers, register_http_middleware
from authcore.auth.accounts import AccountService
from authcore.auth.middleware import create_session_middleware
from authcore.auth.models import utcnow
from authcore.auth.repository import Repositories
from authcore.auth.reset import PasswordResetService
from authcore.auth.router import (
    create_account_router,
    create_admin_router,
    create_auth_router,
)
from authcore.auth.service import AuthService
from authcore.auth.stores import PasswordHasher
from authcore.core.config import AppConfig
from authcore.core.security import Pbkdf2PasswordHasher

LOGGER = logging.getLogger(__name__)


@dataclass
class AuthServices:
    """Wired service graph shared by routes and scripts."""

    auth: AuthService
    reset: PasswordResetService
    accounts: AccountService


def build_services(
    config: AppConfig,
    repositories: Repositories,
    hasher: PasswordHasher | None = None,
) -> AuthServices:
    hasher = hasher or Pbkdf2PasswordHasher(config.auth.password_hash_iterations)
    auth_service = AuthService(
        repositories.users, repositories.sessions, hasher, config.auth
    )
    reset_service = PasswordResetService(
        repositories.users, repositories.reset_tokens, config.auth, hasher
    )
    accounts = AccountService(repositories.users, hasher, reset_service)
    return AuthServices(auth=auth_service, reset=reset_service, accounts=accounts)


def build_app(
    config: AppConfig,
    repositories: Repositories,
    *,
    hasher: PasswordHasher | None = None,
    logger: Any = LOGGER,
) -> FastAPI:
    """Create the HTTP app around the credential services."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            repositories.close()

    app = FastAPI(title="authcore API", version="1.0.0", lifespan=lifespan)
    services = build_services(config, repositories, hasher)
    app.state.services = services

    services.accounts.bootstrap_admin_user(
        username=config.auth.admin_username,
        password=config.auth.admin_password,
        now=utcnow(),
    )

    app.middleware("http")(
        create_session_middleware(
            services.auth, cookie_name=config.auth.session_cookie_name
        )
    )
    register_http_middleware(app, config=config, logger=logger)
    register_exception_handlers(app, logger=logger)
    # Added last so it wraps every other middleware, including auth rejections.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "X-Session-Id"],
    )

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    app.include_router(create_auth_router(services.auth, services.reset, config.auth))
    app.include_router(create_account_router(services.accounts))
    app.include_router(create_admin_router(services.accounts))
    return app
