"""Store implementations with MongoDB primary and JSON file fallback."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from threading import RLock
from typing import Any, Callable

from pymongo import MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from authcore.auth.errors import RecordNotFoundError, StoreError
from authcore.auth.models import PasswordResetToken, Session, User
from authcore.auth.stores import PasswordResetTokenStore, SessionStore, UserStore
from authcore.core.config import RESET_TOKEN_RETENTION_DAYS, StorageConfig

LOGGER = logging.getLogger(__name__)

USERS_COLLECTION = "auth_users"
SESSIONS_COLLECTION = "auth_sessions"
RESET_TOKENS_COLLECTION = "auth_password_reset_tokens"

# Expired tokens are kept this long so redemption still reports expiry.
RESET_TOKEN_RETENTION = timedelta(days=RESET_TOKEN_RETENTION_DAYS)

Row = dict[str, Any]


class JsonFileCollection:
    """List-of-dicts JSON file guarded by a process-local lock.

    Every read-modify-write runs under the lock, which gives the per-record
    atomicity the services rely on within a single process.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = RLock()

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> list[Row]:
        """Read list payload from JSON file with empty fallback."""
        with self._lock:
            if not self._path.exists():
                return []
            try:
                payload = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                LOGGER.warning("store_file_unreadable", extra={"path": str(self._path)})
                return []
            return payload if isinstance(payload, list) else []

    def write(self, rows: list[Row]) -> None:
        """Persist list payload to JSON file."""
        with self._lock:
            try:
                self._path.write_text(
                    json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8"
                )
            except OSError as exc:
                raise StoreError(f"Failed to write {self._path.name}") from exc

    def find_one(self, predicate: Callable[[Row], bool]) -> Row | None:
        for row in self.read():
            if predicate(row):
                return row
        return None

    def mutate(self, fn: Callable[[list[Row]], list[Row]]) -> None:
        """Apply ``fn`` to the current rows and persist its result atomically."""
        with self._lock:
            self.write(fn(self.read()))

    def remove_where(self, predicate: Callable[[Row], bool]) -> int:
        """Drop matching rows and return how many were removed."""
        removed = 0

        def _purge(rows: list[Row]) -> list[Row]:
            nonlocal removed
            kept = [row for row in rows if not predicate(row)]
            removed = len(rows) - len(kept)
            return kept

        self.mutate(_purge)
        return removed


def _mongo_call(action: str, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except PyMongoError as exc:
        raise StoreError(f"MongoDB {action} failed") from exc


def _email_key(email: str | None) -> str:
    return (email or "").strip().lower()


def _normalized_user_fields(fields: dict[str, Any]) -> dict[str, Any]:
    if "email" not in fields:
        return dict(fields)
    return {**fields, "email": _email_key(fields["email"]) or None}


class FileUserRepository:
    """User records in a JSON file; email lookups are case-insensitive."""

    def __init__(self, file: JsonFileCollection) -> None:
        self._file = file

    def get_by_id(self, user_id: str) -> User | None:
        row = self._file.find_one(lambda r: str(r.get("user_id", "")) == user_id)
        return User.model_validate(row) if row else None

    def get_by_username(self, username: str) -> User | None:
        key = username.strip()
        row = self._file.find_one(lambda r: str(r.get("username", "")) == key)
        return User.model_validate(row) if row else None

    def get_by_email(self, email: str) -> User | None:
        key = _email_key(email)
        if not key:
            return None
        row = self._file.find_one(lambda r: _email_key(r.get("email")) == key)
        return User.model_validate(row) if row else None

    def create(self, user: User) -> User:
        """Append new user; email is stored lowercased."""
        user = user.model_copy(update=_normalized_user_fields({"email": user.email}))
        row = user.model_dump(mode="json")

        def _append(rows: list[Row]) -> list[Row]:
            for existing in rows:
                if existing.get("username") == user.username:
                    raise StoreError(f"Duplicate username: {user.username}")
                if user.email and _email_key(existing.get("email")) == user.email:
                    raise StoreError("Duplicate email")
            return [*rows, row]

        self._file.mutate(_append)
        return user

    def update(self, user_id: str, fields: dict[str, Any]) -> User:
        """Apply partial update and return the stored user."""
        fields = _normalized_user_fields(fields)
        updated: list[User] = []

        def _apply(rows: list[Row]) -> list[Row]:
            next_rows = []
            for row in rows:
                if str(row.get("user_id", "")) == user_id:
                    merged = User.model_validate({**row, **fields})
                    updated.append(merged)
                    row = merged.model_dump(mode="json")
                next_rows.append(row)
            return next_rows

        self._file.mutate(_apply)
        if not updated:
            raise RecordNotFoundError("user", user_id)
        return updated[0]

    def list_all(self) -> list[User]:
        return [User.model_validate(row) for row in self._file.read()]


class MongoUserRepository:
    """User records in MongoDB; emails are stored lowercased."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    def _find_one(self, query: dict[str, Any]) -> User | None:
        doc = _mongo_call("find", lambda: self._collection.find_one(query, {"_id": 0}))
        return User.model_validate(doc) if doc else None

    def get_by_id(self, user_id: str) -> User | None:
        return self._find_one({"user_id": user_id})

    def get_by_username(self, username: str) -> User | None:
        return self._find_one({"username": username.strip()})

    def get_by_email(self, email: str) -> User | None:
        key = _email_key(email)
        return self._find_one({"email": key}) if key else None

    def create(self, user: User) -> User:
        user = user.model_copy(update=_normalized_user_fields({"email": user.email}))
        doc = user.model_dump()
        if doc["email"] is None:
            # The sparse unique index only skips documents without the field.
            doc.pop("email")
        _mongo_call("insert", lambda: self._collection.insert_one(doc))
        return user

    def update(self, user_id: str, fields: dict[str, Any]) -> User:
        """Apply partial update atomically and return the stored user."""
        fields = _normalized_user_fields(fields)
        clears_email = "email" in fields and fields["email"] is None
        change: dict[str, Any] = {}
        to_set = {k: v for k, v in fields.items() if not (k == "email" and clears_email)}
        if to_set:
            change["$set"] = to_set
        if clears_email:
            change["$unset"] = {"email": ""}

        doc = _mongo_call(
            "update",
            lambda: self._collection.find_one_and_update(
                {"user_id": user_id},
                change,
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            ),
        )
        if doc is None:
            raise RecordNotFoundError("user", user_id)
        return User.model_validate(doc)

    def list_all(self) -> list[User]:
        docs = _mongo_call("find", lambda: list(self._collection.find({}, {"_id": 0})))
        return [User.model_validate(doc) for doc in docs]


class FileSessionRepository:
    """Session records in a JSON file."""

    def __init__(self, file: JsonFileCollection) -> None:
        self._file = file

    def create(self, session: Session) -> Session:
        row = session.model_dump(mode="json")
        self._file.mutate(lambda rows: [*rows, row])
        return session

    def get_by_id(self, session_id: str) -> Session | None:
        row = self._file.find_one(lambda r: str(r.get("session_id", "")) == session_id)
        return Session.model_validate(row) if row else None

    def delete_by_id(self, session_id: str) -> None:
        self._file.remove_where(lambda r: str(r.get("session_id", "")) == session_id)

    def count_expired(self, now: datetime) -> int:
        return sum(
            1 for row in self._file.read() if not Session.model_validate(row).is_valid(now)
        )

    def delete_expired(self, now: datetime) -> int:
        """Delete sessions whose expiry is not after ``now``."""
        return self._file.remove_where(
            lambda r: not Session.model_validate(r).is_valid(now)
        )


class MongoSessionRepository:
    """Session records in MongoDB."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    def create(self, session: Session) -> Session:
        doc = session.model_dump()
        _mongo_call("insert", lambda: self._collection.insert_one(doc))
        return session

    def get_by_id(self, session_id: str) -> Session | None:
        doc = _mongo_call(
            "find",
            lambda: self._collection.find_one({"session_id": session_id}, {"_id": 0}),
        )
        return Session.model_validate(doc) if doc else None

    def delete_by_id(self, session_id: str) -> None:
        _mongo_call(
            "delete", lambda: self._collection.delete_one({"session_id": session_id})
        )

    def count_expired(self, now: datetime) -> int:
        return int(
            _mongo_call(
                "count",
                lambda: self._collection.count_documents({"expires_at": {"$lte": now}}),
            )
        )

    def delete_expired(self, now: datetime) -> int:
        result = _mongo_call(
            "delete",
            lambda: self._collection.delete_many({"expires_at": {"$lte": now}}),
        )
        return int(result.deleted_count)


class FileResetTokenRepository:
    """Reset token records in a JSON file, looked up by token hash.

    ``delete_expired`` only drops tokens that expired more than ``retention``
    ago; younger expired tokens stay so redemption can report expiry.
    """

    def __init__(
        self, file: JsonFileCollection, retention: timedelta = RESET_TOKEN_RETENTION
    ) -> None:
        self._file = file
        self._retention = retention

    def create(self, record: PasswordResetToken) -> PasswordResetToken:
        row = record.model_dump(mode="json")
        self._file.mutate(lambda rows: [*rows, row])
        return record

    def get_by_token_hash(self, token_hash: str) -> PasswordResetToken | None:
        row = self._file.find_one(lambda r: str(r.get("token_hash", "")) == token_hash)
        return PasswordResetToken.model_validate(row) if row else None

    def mark_used(self, token_id: str, when: datetime) -> bool:
        """Set ``used_at`` if the token is still unused; return whether it was."""
        marked = False

        def _mark(rows: list[Row]) -> list[Row]:
            nonlocal marked
            for row in rows:
                if str(row.get("token_id", "")) == token_id and not row.get("used_at"):
                    record = PasswordResetToken.model_validate(row)
                    row.update(
                        record.model_copy(update={"used_at": when}).model_dump(mode="json")
                    )
                    marked = True
            return rows

        self._file.mutate(_mark)
        return marked

    def _purgeable(self, row: Row, now: datetime) -> bool:
        return PasswordResetToken.model_validate(row).expires_at < now - self._retention

    def count_expired(self, now: datetime) -> int:
        return sum(1 for row in self._file.read() if self._purgeable(row, now))

    def delete_expired(self, now: datetime) -> int:
        return self._file.remove_where(lambda r: self._purgeable(r, now))


class MongoResetTokenRepository:
    """Reset token records in MongoDB with a conditional ``mark_used``."""

    def __init__(
        self, collection: Any, retention: timedelta = RESET_TOKEN_RETENTION
    ) -> None:
        self._collection = collection
        self._retention = retention

    def create(self, record: PasswordResetToken) -> PasswordResetToken:
        doc = record.model_dump()
        _mongo_call("insert", lambda: self._collection.insert_one(doc))
        return record

    def get_by_token_hash(self, token_hash: str) -> PasswordResetToken | None:
        doc = _mongo_call(
            "find",
            lambda: self._collection.find_one({"token_hash": token_hash}, {"_id": 0}),
        )
        return PasswordResetToken.model_validate(doc) if doc else None

    def mark_used(self, token_id: str, when: datetime) -> bool:
        result = _mongo_call(
            "update",
            lambda: self._collection.update_one(
                {"token_id": token_id, "used_at": None},
                {"$set": {"used_at": when}},
            ),
        )
        return int(result.modified_count) == 1

    def count_expired(self, now: datetime) -> int:
        cutoff = now - self._retention
        return int(
            _mongo_call(
                "count",
                lambda: self._collection.count_documents({"expires_at": {"$lt": cutoff}}),
            )
        )

    def delete_expired(self, now: datetime) -> int:
        cutoff = now - self._retention
        result = _mongo_call(
            "delete",
            lambda: self._collection.delete_many({"expires_at": {"$lt": cutoff}}),
        )
        return int(result.deleted_count)


@dataclass
class Repositories:
    """Bundle of store implementations sharing one backend."""

    users: UserStore
    sessions: SessionStore
    reset_tokens: PasswordResetTokenStore
    client: Any = None

    def close(self) -> None:
        if self.client is not None:
            self.client.close()


def build_repositories(config: StorageConfig, *, app_root: Path) -> Repositories:
    """Open MongoDB stores when configured, JSON file stores otherwise."""
    if config.mongo_uri:
        client: Any = MongoClient(
            config.mongo_uri, serverSelectionTimeoutMS=3000, tz_aware=True
        )
        _mongo_call("ping", lambda: client.admin.command("ping"))
        db = client[config.mongo_db]
        return Repositories(
            users=MongoUserRepository(db[USERS_COLLECTION]),
            sessions=MongoSessionRepository(db[SESSIONS_COLLECTION]),
            reset_tokens=MongoResetTokenRepository(db[RESET_TOKENS_COLLECTION]),
            client=client,
        )

    data_dir = Path(config.data_dir)
    if not data_dir.is_absolute():
        data_dir = app_root / data_dir
    return Repositories(
        users=FileUserRepository(JsonFileCollection(data_dir / "users.json")),
        sessions=FileSessionRepository(JsonFileCollection(data_dir / "sessions.json")),
        reset_tokens=FileResetTokenRepository(
            JsonFileCollection(data_dir / "password_reset_tokens.json")
        ),
    )
