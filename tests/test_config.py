from __future__ import annotations

from datetime import timedelta

import pytest

from authcore.core.config import AppConfig


def test_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "AUTH_SESSION_TTL_MINUTES",
        "AUTH_RESET_TOKEN_TTL_MINUTES",
        "AUTH_LOCKOUT_THRESHOLD",
        "AUTH_LOCKOUT_WINDOW_MINUTES",
        "AUTH_ADMIN_PASSWORD",
        "AUTH_COOKIE_SECURE",
        "MONGODB_URI",
        "STORAGE_DATA_DIR",
    ):
        monkeypatch.delenv(name, raising=False)

    config = AppConfig.from_env()

    assert config.auth.session_ttl == timedelta(hours=4)
    assert config.auth.reset_token_ttl == timedelta(minutes=30)
    assert config.auth.lockout_threshold == 5
    assert config.auth.lockout_window == timedelta(minutes=15)
    assert config.auth.admin_password == ""
    assert config.auth.cookie_secure is False
    assert config.storage.mongo_uri == ""
    assert config.storage.data_dir == "runtime/auth_store"


def test_config_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_SESSION_TTL_MINUTES", "60")
    monkeypatch.setenv("AUTH_LOCKOUT_THRESHOLD", "3")
    monkeypatch.setenv("AUTH_COOKIE_SECURE", "true")
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.test, ,https://b.test")
    monkeypatch.setenv("MONGODB_URI", " mongodb://db:27017 ")

    config = AppConfig.from_env()

    assert config.auth.session_ttl_minutes == 60
    assert config.auth.lockout_threshold == 3
    assert config.auth.cookie_secure is True
    assert config.security.cors_allowed_origins == ["https://a.test", "https://b.test"]
    assert config.storage.mongo_uri == "mongodb://db:27017"


@pytest.mark.parametrize("raw", ["0", "-5", "soon"])
def test_config_ignores_invalid_positive_ints(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv("AUTH_RESET_TOKEN_TTL_MINUTES", raw)

    assert AppConfig.from_env().auth.reset_token_ttl_minutes == 30
