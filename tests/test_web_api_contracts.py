from __future__ import annotations

from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.routing import APIRoute

from authcore.api.app_factory import build_app
from authcore.auth.repository import build_repositories
from authcore.core.config import (
    AppConfig,
    AuthConfig,
    LoggingConfig,
    SecurityConfig,
    StorageConfig,
)
from authcore.core.security import Pbkdf2PasswordHasher


@pytest.fixture
def app(tmp_path: Path) -> FastAPI:
    config = AppConfig(
        auth=AuthConfig(),
        storage=StorageConfig(data_dir="store", mongo_uri="", mongo_db="test"),
        logging=LoggingConfig(level="INFO"),
        security=SecurityConfig(cors_allowed_origins=[], request_max_bytes=1024),
    )
    repositories = build_repositories(config.storage, app_root=tmp_path)
    return build_app(config, repositories, hasher=Pbkdf2PasswordHasher(iterations=1))


def _response_ref(schema: dict, path: str, method: str, status: str) -> str:
    return schema["paths"][path][method]["responses"][status]["content"][
        "application/json"
    ]["schema"]["$ref"]


def test_health_endpoint_contract_function(app: FastAPI) -> None:
    route = next(
        (
            candidate
            for candidate in app.routes
            if isinstance(candidate, APIRoute) and candidate.path == "/api/health"
        ),
        None,
    )

    assert route is not None
    payload = route.endpoint()
    assert payload.model_dump() == {"status": "ok"}


def test_openapi_contains_login_error_contracts(app: FastAPI) -> None:
    schema = app.openapi()

    assert _response_ref(schema, "/api/auth/login", "post", "200").endswith(
        "LoginResponse"
    )
    for status in ("401", "423"):
        assert _response_ref(schema, "/api/auth/login", "post", status).endswith(
            "ApiErrorResponse"
        )


def test_openapi_contains_reset_and_admin_contracts(app: FastAPI) -> None:
    schema = app.openapi()

    assert _response_ref(schema, "/api/auth/reset/confirm", "post", "400").endswith(
        "ApiErrorResponse"
    )
    assert _response_ref(schema, "/api/admin/users", "post", "201").endswith(
        "CreateUserResponse"
    )
    assert _response_ref(
        schema, "/api/admin/users/{user_id}/reset-token", "post", "404"
    ).endswith("ApiErrorResponse")


def test_openapi_login_response_does_not_expose_session_id(app: FastAPI) -> None:
    schema = app.openapi()

    login_fields = schema["components"]["schemas"]["LoginResponse"]["properties"]
    assert "session_id" not in login_fields
