"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

# Days an expired reset token is kept before purge or Mongo TTL removal.
RESET_TOKEN_RETENTION_DAYS = 7


def _env_positive_int(name: str, default: int) -> int:
    """Read positive integer from env, falling back to default on bad input."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AuthConfig:
    """Credential and session lifecycle configuration."""

    session_ttl_minutes: int = 240
    reset_token_ttl_minutes: int = 30
    lockout_threshold: int = 5
    lockout_window_minutes: int = 15
    password_hash_iterations: int = 310_000
    admin_username: str = "admin"
    admin_password: str = ""
    session_cookie_name: str = "session_id"
    cookie_secure: bool = False

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(minutes=self.session_ttl_minutes)

    @property
    def reset_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.reset_token_ttl_minutes)

    @property
    def lockout_window(self) -> timedelta:
        return timedelta(minutes=self.lockout_window_minutes)


@dataclass(frozen=True)
class StorageConfig:
    """Store backend selection."""

    data_dir: str
    mongo_uri: str
    mongo_db: str


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth: AuthConfig
    storage: StorageConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        defaults = AuthConfig()
        auth = AuthConfig(
            session_ttl_minutes=_env_positive_int(
                "AUTH_SESSION_TTL_MINUTES", defaults.session_ttl_minutes
            ),
            reset_token_ttl_minutes=_env_positive_int(
                "AUTH_RESET_TOKEN_TTL_MINUTES", defaults.reset_token_ttl_minutes
            ),
            lockout_threshold=_env_positive_int(
                "AUTH_LOCKOUT_THRESHOLD", defaults.lockout_threshold
            ),
            lockout_window_minutes=_env_positive_int(
                "AUTH_LOCKOUT_WINDOW_MINUTES", defaults.lockout_window_minutes
            ),
            password_hash_iterations=_env_positive_int(
                "AUTH_PASSWORD_HASH_ITERATIONS", defaults.password_hash_iterations
            ),
            admin_username=os.getenv("AUTH_ADMIN_USERNAME", "admin").strip() or "admin",
            admin_password=os.getenv("AUTH_ADMIN_PASSWORD", "").strip(),
            session_cookie_name=(
                os.getenv("AUTH_SESSION_COOKIE_NAME", "session_id").strip()
                or "session_id"
            ),
            cookie_secure=_env_flag("AUTH_COOKIE_SECURE"),
        )
        storage = StorageConfig(
            data_dir=(
                os.getenv("STORAGE_DATA_DIR", "runtime/auth_store").strip()
                or "runtime/auth_store"
            ),
            mongo_uri=os.getenv("MONGODB_URI", "").strip(),
            mongo_db=os.getenv("MONGODB_DB", "authcore").strip() or "authcore",
        )
        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if origin.strip()
        ]
        request_max_bytes = _env_positive_int("REQUEST_MAX_BYTES", 1024 * 1024)

        return AppConfig(
            auth=auth,
            storage=storage,
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
            ),
        )
