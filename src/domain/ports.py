"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .models import (
    AccountRecord,
    Credential,
    Deployment,
    SenderSettings,
    UserRecord,
)


class VerifyOutcome(Enum):
    """
    Result of checking a supplied code against a pending challenge.

    Challenge lifecycle:
    - issue() -> pending
    - VALID: code matched inside the TTL, entry consumed
    - MISMATCH: wrong code, attempts incremented, entry kept
    - EXPIRED: TTL exceeded, entry dropped
    - ATTEMPTS_EXCEEDED: attempt limit reached, entry dropped
    - NOT_FOUND: nothing pending for the key

    EXPIRED, ATTEMPTS_EXCEEDED and VALID are terminal: a fresh issue()
    is needed to start over.
    """

    VALID = "valid"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"


@dataclass(frozen=True)
class CheckResult:
    outcome: VerifyOutcome
    payload: dict[str, Any] | None = None
    attempts_left: int = 0


class CredentialPool(Protocol):
    """Port interface for a persisted pool of third-party credentials."""

    def list_usable(self) -> list[Credential]:
        """
        Return active credentials with remaining daily quota.

        Ordered least-used first so load spreads across the pool.
        """
        ...

    def mark_failed(self, credential_id: int, reason: str) -> None:
        """
        Deactivate a credential after a failed action.

        A credential re-validated within the recheck window is checked
        again and left active if it still validates.
        """
        ...

    def record_success(self, credential_id: int) -> None:
        """Increment today's usage (resetting on a new day) and stamp last_used."""
        ...


class VerificationStore(Protocol):
    """Port interface for pending one-time-code challenges."""

    def issue(self, key: str, payload: Mapping[str, Any]) -> str:
        """Create (or replace) the challenge for key and return its code."""
        ...

    def check(self, key: str, code: str) -> CheckResult:
        """Check a supplied code; see VerifyOutcome for the transitions."""
        ...

    def discard(self, key: str) -> None:
        """Drop any pending challenge for key."""
        ...

    def sweep(self) -> int:
        """Delete challenges older than the TTL. Returns how many were removed."""
        ...


class MailTransport(Protocol):
    """Port interface for outbound email."""

    def send(self, credential: Credential, recipient: str, subject: str, html_body: str) -> None:
        """
        Deliver one message using the sender account in credential.

        Raises:
            CredentialFailure: delivery failed with this sender
        """
        ...

    def verify(self, credential: Credential) -> bool:
        """Return True if the sender account still authenticates."""
        ...


class DeploymentProvider(Protocol):
    """Port interface for the PaaS provider, one credential per call."""

    def create_app(self, credential: Credential, app_name: str) -> dict[str, Any]: ...

    def delete_app(self, credential: Credential, app_name: str) -> None: ...

    def get_config_vars(self, credential: Credential, app_name: str) -> dict[str, Any]: ...

    def patch_config_vars(
        self, credential: Credential, app_name: str, config_vars: Mapping[str, Any]
    ) -> dict[str, Any]: ...

    def list_apps(self, credential: Credential) -> list[dict[str, Any]]: ...

    def get_account(self, credential: Credential) -> bool:
        """Return False only when the provider rejects the credential."""
        ...


class UserRepository(Protocol):
    """Port interface for user persistence."""

    def email_exists(self, email: str) -> bool: ...

    def username_exists(self, username: str) -> bool: ...

    def find_referrer_id(self, referral_code: str) -> int | None: ...

    def create_user(self, payload: Mapping[str, Any], client_ip: str) -> UserRecord:
        """
        Run the registration transaction.

        Raises:
            TransactionFailure: any step failed; nothing was written
        """
        ...

    def get_account(self, email: str) -> AccountRecord | None: ...

    def is_banned(self, user_id: int) -> bool | None: ...

    def find_verified_device(self, user_id: int, device_info: str) -> str | None: ...

    def touch_device(self, device_id: str, ip_address: str) -> None: ...

    def add_pending_device(
        self, device_id: str, user_id: int, ip_address: str, device_info: str, location: str
    ) -> None: ...

    def confirm_device(self, device_id: str, user_id: int) -> None: ...


class DeploymentRepository(Protocol):
    """Port interface for deployed app records."""

    def app_name_taken(self, app_name: str) -> bool: ...

    def get_by_name(self, app_name: str) -> Deployment | None: ...

    def save(self, user_id: int, bot_id: int, app_name: str, credential_id: int) -> Deployment: ...

    def delete_by_name(self, app_name: str) -> bool: ...

    def list_for_user(self, user_id: int) -> list[Deployment]: ...


class CredentialRegistry(Protocol):
    """Administrative access to a credential table."""

    def list_all(self) -> list[Credential]: ...

    def get(self, credential_id: int) -> Credential | None: ...

    def identifier_exists(self, identifier: str) -> bool:
        """API key for deployment keys, mailbox address for email senders."""
        ...

    def add_api_key(self, api_key: str) -> int: ...

    def add_sender(self, sender: SenderSettings) -> int: ...

    def set_active(self, credential_id: int, is_active: bool) -> bool: ...

    def delete(self, credential_id: int) -> bool: ...
