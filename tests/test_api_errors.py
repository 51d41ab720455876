from __future__ import annotations

from datetime import timedelta

from authcore.api.errors import api_error_from_auth_error, to_error_payload
from authcore.auth.errors import (
    AccountLockedError,
    InvalidCredentialsError,
    InvalidCredentialsReason,
    InvalidTokenError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    UserConflictError,
    WeakPasswordError,
)
from authcore.auth.policy import PolicyViolation
from tests.auth_fakes import NOW


def test_to_error_payload_preserves_structured_detail() -> None:
    payload = to_error_payload(
        {"error_code": "AUTH_RESET_TOKEN_INVALID", "message": "Invalid"},
        400,
    )

    assert payload == {"error_code": "AUTH_RESET_TOKEN_INVALID", "message": "Invalid"}


def test_to_error_payload_keeps_details() -> None:
    payload = to_error_payload(
        {"error_code": "AUTH_WEAK_PASSWORD", "message": "Weak", "details": ["short"]},
        400,
    )

    assert payload["details"] == ["short"]


def test_to_error_payload_normalizes_plain_string() -> None:
    payload = to_error_payload("boom", 500)

    assert payload == {"error_code": "HTTP_500", "message": "boom"}


def test_invalid_credentials_reasons_share_public_error() -> None:
    unknown = api_error_from_auth_error(
        InvalidCredentialsError(InvalidCredentialsReason.UNKNOWN_IDENTIFIER)
    )
    wrong = api_error_from_auth_error(
        InvalidCredentialsError(InvalidCredentialsReason.WRONG_PASSWORD)
    )

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.detail == wrong.detail


def test_locked_account_maps_to_423_without_timestamp() -> None:
    error = api_error_from_auth_error(AccountLockedError(NOW + timedelta(minutes=15)))

    assert error.status_code == 423
    assert error.detail["error_code"] == "AUTH_ACCOUNT_LOCKED"
    assert str(NOW.year) not in error.detail["message"]


def test_reset_token_failures_share_public_error() -> None:
    errors = [
        api_error_from_auth_error(exc)
        for exc in (InvalidTokenError(), TokenAlreadyUsedError(), TokenExpiredError())
    ]

    assert {error.status_code for error in errors} == {400}
    assert all(error.detail == errors[0].detail for error in errors)


def test_weak_password_lists_violations() -> None:
    error = api_error_from_auth_error(
        WeakPasswordError([PolicyViolation.TOO_SHORT, PolicyViolation.DENYLISTED])
    )

    assert error.status_code == 400
    assert error.detail["error_code"] == "AUTH_WEAK_PASSWORD"
    assert len(error.detail["details"]) == 2


def test_user_conflict_maps_to_409() -> None:
    error = api_error_from_auth_error(UserConflictError("username"))

    assert error.status_code == 409
    assert error.detail["error_code"] == "USER_CONFLICT"
