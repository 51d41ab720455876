"""Password strength policy as an immutable, injectable value."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum

from authcore.auth.errors import WeakPasswordError

DEFAULT_DENYLIST = frozenset(
    {
        "password",
        "123456",
        "qwerty",
        "password123",
        "password1234",
        "123456789012",
        "qwertyuiop12",
        "letmein12345",
        "welcome12345",
        "administrator",
    }
)

_CHARACTER_CLASSES = (
    re.compile(r"[a-z]"),
    re.compile(r"[A-Z]"),
    re.compile(r"[0-9]"),
    re.compile(r"[^A-Za-z0-9]"),
)


class PolicyViolation(StrEnum):
    TOO_SHORT = "TOO_SHORT"
    TOO_FEW_CHARACTER_CLASSES = "TOO_FEW_CHARACTER_CLASSES"
    DENYLISTED = "DENYLISTED"


@dataclass(frozen=True)
class PolicyResult:
    """Outcome of a policy check; ``violations`` is empty when ``ok``."""

    violations: tuple[PolicyViolation, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.violations


def count_character_classes(value: str) -> int:
    """Count lowercase, uppercase, digit and symbol classes present."""
    return sum(1 for pattern in _CHARACTER_CLASSES if pattern.search(value))


@dataclass(frozen=True)
class CredentialPolicy:
    """Length, character-class and denylist rules for new passwords."""

    min_length: int = 12
    min_classes: int = 3
    denylist: frozenset[str] = field(default=DEFAULT_DENYLIST)

    def validate(self, candidate: str) -> PolicyResult:
        """Check candidate against every rule and collect all violations."""
        violations: list[PolicyViolation] = []
        if len(candidate) < self.min_length:
            violations.append(PolicyViolation.TOO_SHORT)
        if count_character_classes(candidate) < self.min_classes:
            violations.append(PolicyViolation.TOO_FEW_CHARACTER_CLASSES)
        if candidate.lower() in self._normalized_denylist():
            violations.append(PolicyViolation.DENYLISTED)
        return PolicyResult(violations=tuple(violations))

    def ensure(self, candidate: str) -> None:
        """Raise ``WeakPasswordError`` when candidate fails the policy."""
        result = self.validate(candidate)
        if not result.ok:
            raise WeakPasswordError(list(result.violations))

    def describe(self, violation: PolicyViolation) -> str:
        """Return user-facing guidance for a violated rule."""
        if violation is PolicyViolation.TOO_SHORT:
            return f"Password must be at least {self.min_length} characters"
        if violation is PolicyViolation.TOO_FEW_CHARACTER_CLASSES:
            return (
                f"Password must include {self.min_classes} of 4 character classes: "
                "lowercase, uppercase, digit, symbol"
            )
        return "Password is too common"

    def _normalized_denylist(self) -> frozenset[str]:
        return frozenset(item.lower() for item in self.denylist)


DEFAULT_POLICY = CredentialPolicy()
