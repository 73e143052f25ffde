"""
Domain layer - Pure business logic with zero framework imports.

This package contains the core business logic of TalkDrove: credential
rotation, verified signup, device-verified login, bot deployment and
credential administration. It defines its own port interfaces for
infrastructure abstraction, ensuring true hexagonal architecture
decoupling.
"""

from .credentials import ActionExecutor, CredentialSelector, ExecutionResult
from .exceptions import (
    ActionFailure,
    CredentialExhausted,
    CredentialFailure,
    CredentialSkipped,
    TalkDroveError,
    TransactionFailure,
)
from .ports import CheckResult, CredentialPool, MailTransport, VerificationStore, VerifyOutcome
from .registration import RegistrationService

__all__ = [
    "ActionExecutor",
    "ActionFailure",
    "CheckResult",
    "CredentialExhausted",
    "CredentialFailure",
    "CredentialPool",
    "CredentialSelector",
    "CredentialSkipped",
    "ExecutionResult",
    "MailTransport",
    "RegistrationService",
    "TalkDroveError",
    "TransactionFailure",
    "VerificationStore",
    "VerifyOutcome",
]
