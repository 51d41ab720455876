"""Versioned MongoDB index migrations for auth collections."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import pymongo

from authcore.core.config import RESET_TOKEN_RETENTION_DAYS, StorageConfig
from authcore.core.logging import CORRELATION_ID_CTX

MigrationFn = Callable[[Any], None]


def _migration_20261019_01_auth_indexes(db: Any) -> None:
    db["auth_users"].create_index("user_id", unique=True)
    db["auth_users"].create_index("username", unique=True)
    db["auth_users"].create_index("email", unique=True, sparse=True)
    db["auth_sessions"].create_index("session_id", unique=True)
    db["auth_sessions"].create_index("user_id")
    db["auth_password_reset_tokens"].create_index("token_id", unique=True)
    db["auth_password_reset_tokens"].create_index("token_hash", unique=True)


def _migration_20261019_02_expiry_ttl(db: Any) -> None:
    db["auth_sessions"].create_index(
        "expires_at",
        expireAfterSeconds=0,
        name="idx_auth_sessions_expires_at_ttl",
    )
    db["auth_password_reset_tokens"].create_index(
        "expires_at",
        expireAfterSeconds=RESET_TOKEN_RETENTION_DAYS * 24 * 60 * 60,
        name="idx_auth_password_reset_tokens_expires_at_ttl",
    )


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("20261019_01_auth_indexes", _migration_20261019_01_auth_indexes),
    ("20261019_02_expiry_ttl", _migration_20261019_02_expiry_ttl),
]


def apply_migrations_to_db(db: Any) -> list[str]:
    """Apply pending migrations to ``db`` and return the ids applied."""
    migration_collection = db["schema_migrations"]
    migration_collection.create_index("migration_id", unique=True)

    applied: list[str] = []
    for migration_id, migration_fn in MIGRATIONS:
        if migration_collection.find_one({"migration_id": migration_id}):
            continue
        migration_fn(db)
        migration_collection.insert_one(
            {
                "migration_id": migration_id,
                "applied_at": datetime.now(timezone.utc),
                "correlation_id": CORRELATION_ID_CTX.get(),
            }
        )
        applied.append(migration_id)
    return applied


def apply_mongo_migrations(config: StorageConfig) -> list[str]:
    """Apply MongoDB migrations if a Mongo URI is configured."""
    if not config.mongo_uri:
        return []

    client: Any = pymongo.MongoClient(config.mongo_uri, serverSelectionTimeoutMS=3000)
    try:
        client.admin.command("ping")
        return apply_migrations_to_db(client[config.mongo_db])
    finally:
        client.close()
