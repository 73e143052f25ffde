"""
Domain exceptions - Semantic error types for the TalkDrove core.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Each user-facing error carries a safe ``message`` that the API layer
may return verbatim.
"""


class TalkDroveError(Exception):
    """Base class for domain errors."""

    message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationError(TalkDroveError):
    """Bad input the user can correct."""

    message = "Invalid request"


class RecipientRejected(ValidationError):
    """The mail server refused the recipient address; the sender is not at fault."""

    message = "Email address rejected"


class NotAuthenticated(TalkDroveError):
    """No logged-in user for a route that requires one."""

    message = "User not logged in"


class Forbidden(TalkDroveError):
    """The logged-in user may not perform this action."""

    message = "Access denied"


class InvalidCredentials(TalkDroveError):
    """Email/password pair does not match an account."""

    message = "Invalid credentials"


class NotFound(TalkDroveError):
    """Requested resource does not exist."""

    message = "Not found"


class VerificationError(TalkDroveError):
    """Base class for challenge failures; the user must retry or restart."""

    pass


class VerificationNotFound(VerificationError):
    """No pending challenge for the key."""

    message = "No verification pending. Please request a new code."


class VerificationExpired(VerificationError):
    """Pending challenge is older than the TTL."""

    message = "Verification code has expired. Please request a new code."


class VerificationMismatch(VerificationError):
    """Wrong code; the challenge stays open."""

    message = "Invalid verification code"

    def __init__(self, attempts_left: int) -> None:
        super().__init__()
        self.attempts_left = attempts_left


class AttemptsExceeded(VerificationError):
    """Attempt budget spent; the challenge was dropped."""

    message = "Too many incorrect attempts. Please request a new code."


class CredentialExhausted(TalkDroveError):
    """No third-party credential could perform the action."""

    message = "Service temporarily unavailable. Please try again later."


class TransactionFailure(TalkDroveError):
    """A database unit of work failed and was rolled back."""

    message = "Account creation failed"


class DeploymentError(TalkDroveError):
    """The deployment provider rejected a request."""

    message = "Deployment provider rejected the request"


class DeliveryError(TalkDroveError):
    """A message could not be delivered through the selected sender."""

    message = "Failed to send email"


class ActionFailure(Exception):
    """Raised by an outbound action attempted with one credential."""

    pass


class CredentialFailure(ActionFailure):
    """The credential itself failed (auth, quota, transport); the pool is updated."""

    pass


class CredentialSkipped(ActionFailure):
    """The credential cannot reach this resource; try the next one, pool untouched."""

    pass
