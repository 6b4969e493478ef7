"""
Password strength policy.

Six checks, one point each. A password is strong when it scores at
least five, so at most one requirement may be missed. Key files are
never passed through this policy.
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, Field

from .errors import WeakKeyError

MIN_LENGTH = 12
STRONG_SCORE = 5

SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"
COMMON_PASSWORDS = ("password", "password123", "123456789", "qwerty")

_SPECIAL_RE = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")


class Requirement(str, Enum):
    """A single check of the password policy."""

    MIN_LENGTH = "min length"
    HAS_UPPER = "has upper"
    HAS_LOWER = "has lower"
    HAS_NUMBER = "has number"
    HAS_SPECIAL = "has special"
    NOT_COMMON = "not common"


class PasswordReport(BaseModel):
    """Outcome of validating a password.

    Attributes:
        strong: True when score >= 5.
        score: Number of requirements met (0-6).
        unmet: Requirements the password failed.
    """

    strong: bool
    score: int = Field(ge=0, le=len(Requirement))
    unmet: set[Requirement] = Field(default_factory=set)

    @property
    def message(self) -> str:
        """Human-readable summary of the report."""
        if self.strong:
            return "Strong password"
        ordered = [req.value for req in Requirement if req in self.unmet]
        return "Requirements: " + ", ".join(ordered)


def _checks(password: str) -> dict[Requirement, bool]:
    lowered = password.lower()
    return {
        Requirement.MIN_LENGTH: len(password) >= MIN_LENGTH,
        Requirement.HAS_UPPER: re.search(r"[A-Z]", password) is not None,
        Requirement.HAS_LOWER: re.search(r"[a-z]", password) is not None,
        Requirement.HAS_NUMBER: re.search(r"[0-9]", password) is not None,
        Requirement.HAS_SPECIAL: _SPECIAL_RE.search(password) is not None,
        Requirement.NOT_COMMON: not any(c in lowered for c in COMMON_PASSWORDS),
    }


def validate_password(password: str) -> PasswordReport:
    """Score a password against the strength policy.

    Args:
        password: The candidate password.

    Returns:
        PasswordReport: Score, verdict and unmet requirements.
    """
    checks = _checks(password)
    score = sum(1 for met in checks.values() if met)
    return PasswordReport(
        strong=score >= STRONG_SCORE,
        score=score,
        unmet={req for req, met in checks.items() if not met},
    )


def ensure_strong(password: str) -> PasswordReport:
    """Validate a password and refuse weak ones.

    Args:
        password: The candidate password.

    Returns:
        PasswordReport: The report for a strong password.

    Raises:
        WeakKeyError: If the password scores below five.
    """
    report = validate_password(password)
    if not report.strong:
        raise WeakKeyError(report)
    return report
