from __future__ import annotations

import pytest

from authcore.auth.accounts import AccountService
from authcore.auth.errors import (
    InvalidCredentialsError,
    UserConflictError,
    UserNotFoundError,
    WeakPasswordError,
)
from authcore.auth.models import UserRole
from authcore.auth.reset import PasswordResetService
from authcore.core.config import AuthConfig
from authcore.core.security import hash_token
from tests.auth_fakes import NOW, PlainHasher, ResetTokens, Users, make_user


def _build() -> tuple[AccountService, Users, ResetTokens, PlainHasher]:
    users = Users()
    tokens = ResetTokens()
    hasher = PlainHasher()
    reset = PasswordResetService(users, tokens, AuthConfig(), hasher)
    return AccountService(users, hasher, reset), users, tokens, hasher


def test_accounts_create_user_issues_reset_token() -> None:
    service, users, tokens, _ = _build()

    created, issued = service.create_user(
        admin_id="admin-1",
        username=" bob ",
        name="Bob",
        email="Bob@Example.test",
        role=UserRole.USER,
        now=NOW,
    )

    assert created.username == "bob"
    assert users.get_by_id(created.user_id) is not None
    [record] = tokens.records.values()
    assert record.user_id == created.user_id
    assert record.created_by_user_id == "admin-1"
    assert record.token_hash == hash_token(issued.raw_token)


def test_accounts_create_user_rejects_duplicates() -> None:
    service, users, _, hasher = _build()
    make_user(users, hasher)

    with pytest.raises(UserConflictError) as by_username:
        service.create_user(
            admin_id="a", username="alice", name="A", email=None, role=UserRole.USER, now=NOW
        )
    with pytest.raises(UserConflictError) as by_email:
        service.create_user(
            admin_id="a",
            username="alice2",
            name="A",
            email="ALICE@example.test",
            role=UserRole.USER,
            now=NOW,
        )

    assert by_username.value.field == "username"
    assert by_email.value.field == "email"


def test_accounts_issue_reset_for_unknown_user_fails() -> None:
    service, _, tokens, _ = _build()

    with pytest.raises(UserNotFoundError):
        service.issue_reset_for_user(admin_id="admin-1", user_id="ghost", now=NOW)

    assert tokens.records == {}


def test_accounts_bootstrap_admin_is_idempotent() -> None:
    service, users, _, hasher = _build()

    created = service.bootstrap_admin_user(
        username="root", password="Bootstrap-Admin-1", now=NOW
    )
    again = service.bootstrap_admin_user(
        username="root", password="Bootstrap-Admin-1", now=NOW
    )

    assert created is not None
    assert created.role is UserRole.ADMIN
    assert hasher.verify("Bootstrap-Admin-1", created.password_hash)
    assert again is None
    assert len(users.users) == 1


def test_accounts_bootstrap_admin_requires_strong_password() -> None:
    service, users, _, _ = _build()

    assert service.bootstrap_admin_user(username="root", password="", now=NOW) is None
    with pytest.raises(WeakPasswordError):
        service.bootstrap_admin_user(username="root", password="admin123", now=NOW)
    assert users.users == {}


def test_accounts_update_profile_changes_name_without_password() -> None:
    service, users, _, hasher = _build()
    make_user(users, hasher)

    updated = service.update_profile(
        user_id="u1", changes={"name": " Alice A. "}, current_password=None
    )

    assert updated.name == "Alice A."
    assert hasher.verify_calls == 0


def test_accounts_update_profile_identity_change_needs_current_password() -> None:
    service, users, _, hasher = _build()
    make_user(users, hasher)

    with pytest.raises(InvalidCredentialsError):
        service.update_profile(
            user_id="u1", changes={"phone": "+1 555 0100"}, current_password=None
        )
    with pytest.raises(InvalidCredentialsError):
        service.update_profile(
            user_id="u1", changes={"username": "alicia"}, current_password="wrong"
        )

    assert users.updates == []
    assert users.users["u1"].failed_login_count == 0


def test_accounts_update_profile_sets_and_clears_contact_fields() -> None:
    service, users, _, hasher = _build()
    make_user(users, hasher)

    updated = service.update_profile(
        user_id="u1",
        changes={"username": "alicia", "email": None, "phone": "+1 555 0100"},
        current_password="CorrectHorse9!",
    )

    assert updated.username == "alicia"
    assert updated.email is None
    assert updated.phone == "+1 555 0100"


def test_accounts_update_profile_rejects_taken_username_and_email() -> None:
    service, users, _, hasher = _build()
    make_user(users, hasher)
    make_user(users, hasher, user_id="u2", username="bob", email="bob@example.test")

    with pytest.raises(UserConflictError) as by_username:
        service.update_profile(
            user_id="u1", changes={"username": "bob"}, current_password="CorrectHorse9!"
        )
    with pytest.raises(UserConflictError) as by_email:
        service.update_profile(
            user_id="u1",
            changes={"email": "BOB@example.test"},
            current_password="CorrectHorse9!",
        )
    kept = service.update_profile(
        user_id="u1", changes={"username": "alice"}, current_password="CorrectHorse9!"
    )

    assert by_username.value.field == "username"
    assert by_email.value.field == "email"
    assert kept.username == "alice"


def test_accounts_update_profile_unknown_user_fails() -> None:
    service, _, _, _ = _build()

    with pytest.raises(UserNotFoundError):
        service.update_profile(user_id="ghost", changes={"name": "X"}, current_password=None)
