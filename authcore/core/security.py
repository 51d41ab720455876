"""Security primitives for password hashing and random identifiers."""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
import secrets

PBKDF2_ALGORITHM = "pbkdf2_sha256"
DEFAULT_PBKDF2_ITERATIONS = 310_000
SALT_BYTES = 16

# 32 random bytes = 256 bits.
SESSION_ID_BYTES = 32
RESET_TOKEN_BYTES = 32


def _b64url_encode(raw: bytes) -> str:
    """Return URL-safe base64 string without padding."""
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    """Decode URL-safe base64 string with optional missing padding."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


class Pbkdf2PasswordHasher:
    """Slow salted password hasher based on PBKDF2-HMAC-SHA256.

    Digests are self-describing (``algo$iterations$salt$digest``) so that
    the iteration count can be raised later without breaking existing hashes.
    """

    def __init__(self, iterations: int = DEFAULT_PBKDF2_ITERATIONS) -> None:
        self._iterations = max(1, int(iterations))

    def hash(self, password: str) -> str:
        """Hash password using PBKDF2-HMAC-SHA256 with random salt."""
        salt = os.urandom(SALT_BYTES)
        derived = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), salt, self._iterations
        )
        return (
            f"{PBKDF2_ALGORITHM}${self._iterations}"
            f"${_b64url_encode(salt)}${_b64url_encode(derived)}"
        )

    def verify(self, password: str, stored_hash: str) -> bool:
        """Verify password against a stored PBKDF2 hash."""
        try:
            algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
            if algo != PBKDF2_ALGORITHM:
                return False
            rounds = int(rounds_raw)
            salt = _b64url_decode(salt_b64)
            expected = _b64url_decode(digest_b64)
        except (ValueError, TypeError, AttributeError):
            return False

        derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
        return hmac.compare_digest(derived, expected)


def new_session_id() -> str:
    """Return an unguessable session identifier."""
    return secrets.token_urlsafe(SESSION_ID_BYTES)


def new_raw_token() -> str:
    """Return a raw password-reset token for one-time disclosure."""
    return secrets.token_urlsafe(RESET_TOKEN_BYTES)


def new_record_id() -> str:
    return secrets.token_hex(16)


def hash_token(token: str) -> str:
    """Hash a high-entropy token for storage and lookup.

    Tokens are random and single-use, so a fast digest is sufficient here.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
