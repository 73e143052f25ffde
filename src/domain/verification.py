"""
Helpers shared by the flows that consume verification challenges.
"""

from typing import Any

from .exceptions import (
    AttemptsExceeded,
    VerificationExpired,
    VerificationMismatch,
    VerificationNotFound,
)
from .ports import CheckResult, VerifyOutcome


def normalize_email(email: str) -> str:
    """Strip whitespace and lowercase; challenge keys and lookups use this form."""
    return email.strip().lower()


def require_valid(result: CheckResult) -> dict[str, Any]:
    """
    Return the challenge payload or raise the matching VerificationError.

    Raises:
        VerificationNotFound, VerificationExpired, VerificationMismatch,
        AttemptsExceeded
    """
    if result.outcome is VerifyOutcome.VALID:
        return dict(result.payload or {})
    if result.outcome is VerifyOutcome.EXPIRED:
        raise VerificationExpired()
    if result.outcome is VerifyOutcome.MISMATCH:
        raise VerificationMismatch(result.attempts_left)
    if result.outcome is VerifyOutcome.ATTEMPTS_EXCEEDED:
        raise AttemptsExceeded()
    raise VerificationNotFound()
