from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from authcore.auth.errors import RecordNotFoundError, TokenExpiredError
from authcore.auth.models import PasswordResetToken, Session, User
from authcore.auth.repository import (
    RESET_TOKEN_RETENTION,
    FileResetTokenRepository,
    FileSessionRepository,
    FileUserRepository,
    JsonFileCollection,
    MongoResetTokenRepository,
    MongoUserRepository,
    build_repositories,
)
from authcore.auth.reset import PasswordResetService
from authcore.core.config import AuthConfig, StorageConfig
from tests.auth_fakes import NOW, PlainHasher


def _user(**fields) -> User:
    base = {
        "user_id": "u1",
        "username": "alice",
        "email": "Alice@Example.Test",
        "password_hash": "hash",
        "created_at": NOW,
    }
    base.update(fields)
    return User(**base)


def _token(**fields) -> PasswordResetToken:
    base = {
        "token_id": "t1",
        "user_id": "u1",
        "created_by_user_id": "admin",
        "token_hash": "th",
        "expires_at": NOW + timedelta(minutes=30),
        "created_at": NOW,
    }
    base.update(fields)
    return PasswordResetToken(**base)


def _users(tmp_path: Path) -> FileUserRepository:
    return FileUserRepository(JsonFileCollection(tmp_path / "users.json"))


def _tokens(tmp_path: Path) -> FileResetTokenRepository:
    return FileResetTokenRepository(JsonFileCollection(tmp_path / "tokens.json"))


def test_auth_repository_user_lookup_by_username_and_email(tmp_path: Path) -> None:
    repo = _users(tmp_path)
    repo.create(_user())

    by_email = repo.get_by_email("alice@example.test")
    by_username = repo.get_by_username("alice")

    assert by_email is not None
    assert by_email.email == "alice@example.test"
    assert by_username is not None
    assert by_username.user_id == "u1"
    assert repo.get_by_username("ALICE") is None
    assert repo.get_by_id("missing") is None


def test_auth_repository_update_persists_datetimes(tmp_path: Path) -> None:
    repo = _users(tmp_path)
    repo.create(_user())

    updated = repo.update(
        "u1", {"failed_login_count": 5, "lockout_until": NOW + timedelta(minutes=15)}
    )
    reloaded = _users(tmp_path).get_by_id("u1")

    assert updated.failed_login_count == 5
    assert reloaded is not None
    assert reloaded.lockout_until == NOW + timedelta(minutes=15)
    assert reloaded.lockout_until.tzinfo is not None


def test_auth_repository_update_lowercases_email(tmp_path: Path) -> None:
    repo = _users(tmp_path)
    repo.create(_user())

    repo.update("u1", {"email": "New@Example.Test"})

    assert repo.get_by_email("new@example.test") is not None


def test_auth_repository_update_unknown_user_raises(tmp_path: Path) -> None:
    with pytest.raises(RecordNotFoundError):
        _users(tmp_path).update("ghost", {"failed_login_count": 1})


def test_auth_repository_handles_corrupted_users_file(tmp_path: Path) -> None:
    users_file = tmp_path / "users.json"
    users_file.write_text("{ invalid", encoding="utf-8")
    repo = FileUserRepository(JsonFileCollection(users_file))

    assert repo.get_by_username("alice") is None


def test_auth_repository_sessions_delete_is_idempotent(tmp_path: Path) -> None:
    repo = FileSessionRepository(JsonFileCollection(tmp_path / "sessions.json"))
    session = Session(
        session_id="s1",
        user_id="u1",
        created_at=NOW,
        expires_at=NOW + timedelta(minutes=240),
    )

    repo.create(session)
    assert repo.get_by_id("s1") == session

    repo.delete_by_id("s1")
    repo.delete_by_id("s1")
    repo.delete_by_id("never-existed")
    assert repo.get_by_id("s1") is None


def test_auth_repository_purges_expired_sessions(tmp_path: Path) -> None:
    repo = FileSessionRepository(JsonFileCollection(tmp_path / "sessions.json"))
    for index, minutes in enumerate([-5, 0, 5]):
        repo.create(
            Session(
                session_id=f"s{index}",
                user_id="u1",
                created_at=NOW - timedelta(hours=1),
                expires_at=NOW + timedelta(minutes=minutes),
            )
        )

    assert repo.count_expired(NOW) == 2
    assert repo.delete_expired(NOW) == 2
    assert repo.get_by_id("s2") is not None

    rows = json.loads((tmp_path / "sessions.json").read_text(encoding="utf-8"))
    assert [row["session_id"] for row in rows] == ["s2"]


def test_auth_repository_mark_used_wins_only_once(tmp_path: Path) -> None:
    repo = _tokens(tmp_path)
    repo.create(_token())

    first = repo.mark_used("t1", NOW)
    second = repo.mark_used("t1", NOW + timedelta(minutes=1))
    record = repo.get_by_token_hash("th")

    assert first is True
    assert second is False
    assert record is not None
    assert record.used_at == NOW


def test_auth_repository_keeps_recently_expired_tokens(tmp_path: Path) -> None:
    repo = _tokens(tmp_path)
    repo.create(_token(token_id="recent", token_hash="h-recent", expires_at=NOW - timedelta(minutes=1)))
    repo.create(
        _token(
            token_id="stale",
            token_hash="h-stale",
            expires_at=NOW - RESET_TOKEN_RETENTION - timedelta(minutes=1),
        )
    )

    assert repo.count_expired(NOW) == 1
    assert repo.delete_expired(NOW) == 1
    assert repo.get_by_token_hash("h-stale") is None
    assert repo.get_by_token_hash("h-recent") is not None


def test_auth_repository_expired_token_still_reports_expiry_after_purge(
    tmp_path: Path,
) -> None:
    tokens = _tokens(tmp_path)
    users = _users(tmp_path)
    hasher = PlainHasher()
    users.create(_user(password_hash=hasher.hash("CorrectHorse9!")))
    service = PasswordResetService(users, tokens, AuthConfig(), hasher)
    issued = service.issue_token("admin", "u1", NOW)
    later = NOW + timedelta(minutes=31)

    tokens.delete_expired(later)

    with pytest.raises(TokenExpiredError):
        service.reset_password(issued.raw_token, "Brand-New-Pass42", later)


def test_auth_repository_mongo_mark_used_is_conditional() -> None:
    collection = MagicMock()
    collection.update_one.return_value.modified_count = 0
    repo = MongoResetTokenRepository(collection)

    assert repo.mark_used("t1", NOW) is False
    collection.update_one.assert_called_once_with(
        {"token_id": "t1", "used_at": None},
        {"$set": {"used_at": NOW}},
    )


def test_auth_repository_mongo_purges_tokens_past_retention() -> None:
    collection = MagicMock()
    collection.delete_many.return_value.deleted_count = 3
    repo = MongoResetTokenRepository(collection)

    assert repo.delete_expired(NOW) == 3
    collection.delete_many.assert_called_once_with(
        {"expires_at": {"$lt": NOW - RESET_TOKEN_RETENTION}}
    )


def test_auth_repository_mongo_update_unknown_user_raises() -> None:
    collection = MagicMock()
    collection.find_one_and_update.return_value = None
    repo = MongoUserRepository(collection)

    with pytest.raises(RecordNotFoundError):
        repo.update("ghost", {"failed_login_count": 1})


def test_auth_repository_mongo_update_unsets_cleared_email() -> None:
    collection = MagicMock()
    collection.find_one_and_update.return_value = _user(email=None).model_dump()
    repo = MongoUserRepository(collection)

    repo.update("u1", {"email": None, "name": "Alice"})

    change = collection.find_one_and_update.call_args.args[1]
    assert change == {"$set": {"name": "Alice"}, "$unset": {"email": ""}}


def test_auth_repository_builds_file_backend_without_mongo(tmp_path: Path) -> None:
    repositories = build_repositories(
        StorageConfig(data_dir="store", mongo_uri="", mongo_db="authcore"),
        app_root=tmp_path,
    )
    repositories.users.create(_user())
    repositories.close()

    assert (tmp_path / "store" / "users.json").exists()
