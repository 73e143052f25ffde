"""
Domain records - Plain dataclasses passed between services and adapters.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

# Recorded when the caller has no usable public address
UNKNOWN_IP = "0.0.0.0"


@dataclass(frozen=True)
class Credential:
    """
    One interchangeable third-party credential from a pool.

    ``secret`` is the bearer token for deployment keys and the SMTP
    password for email senders. ``daily_limit`` of None means unlimited.
    """

    id: int
    secret: str
    is_active: bool = True
    usage_count: int = 0
    daily_limit: int | None = None
    last_reset_date: date | None = None
    failed_attempts: int = 0
    last_checked: datetime | None = None
    last_used: datetime | None = None
    last_error: str | None = None
    # SMTP senders only
    username: str | None = None
    host: str | None = None
    port: int | None = None

    @property
    def masked(self) -> str:
        return mask_secret(self.secret)


def mask_secret(secret: str) -> str:
    """Keep the first and last 8 characters of long secrets."""
    if len(secret) <= 16:
        return "*" * len(secret)
    return f"{secret[:8]}...{secret[-8:]}"


@dataclass
class PendingVerification:
    """A challenge waiting for its code."""

    code: str
    payload: dict[str, Any]
    created_at: datetime
    attempts: int = 0


@dataclass(frozen=True)
class SignupRequest:
    email: str
    password: str
    username: str
    country: str | None = None
    referral_code: str | None = None
    client_ip: str = UNKNOWN_IP


@dataclass(frozen=True)
class UserRecord:
    """Identity row created by the registration transaction."""

    id: int
    email: str
    username: str
    referral_code: str
    country: str | None
    is_banned: bool

    @property
    def status(self) -> str:
        return "banned" if self.is_banned else "active"


@dataclass(frozen=True)
class AccountRecord:
    """Stored user fields needed to authenticate."""

    id: int
    email: str
    password_hash: str
    is_admin: bool = False
    is_banned: bool = False


@dataclass(frozen=True)
class LoginResult:
    user_id: int
    email: str
    requires_verification: bool
    device_id: str
    is_admin: bool = False
    is_banned: bool = False


@dataclass(frozen=True)
class Deployment:
    id: int
    user_id: int
    bot_id: int
    app_name: str
    status: str
    credential_id: int | None = None


@dataclass(frozen=True)
class AppNameCheck:
    exists: bool
    reserved: bool
    provider_exists: bool
    error: str | None = None


@dataclass(frozen=True)
class DeleteResult:
    app_name: str
    provider_deleted: bool
    message: str


@dataclass
class SenderSettings:
    """SMTP account data submitted by an administrator."""

    email: str
    password: str
    host: str
    port: int
    daily_limit: int = 500
