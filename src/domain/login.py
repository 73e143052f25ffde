"""
Login domain service - password login with new-device verification.

A login from a device the user has already verified completes at once.
A login from an unknown device stores a pending device row, emails a
device-verification code, and completes only after verify_device().
"""

import logging
import uuid
from dataclasses import dataclass

import bcrypt

from .credentials import ActionExecutor
from .emails import DEVICE_SUBJECT, device_email
from .exceptions import CredentialExhausted, InvalidCredentials, RecipientRejected
from .models import LoginResult
from .ports import CredentialPool, MailTransport, UserRepository, VerificationStore
from .verification import normalize_email, require_valid

logger = logging.getLogger(__name__)

# Compared against when the email is unknown so response time does not
# reveal whether an account exists.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(10)).decode()


@dataclass
class LoginService:
    users: UserRepository
    codes: VerificationStore
    executor: ActionExecutor
    sender_pool: CredentialPool
    transport: MailTransport
    ttl_minutes: int = 30

    def login(
        self,
        email: str,
        password: str,
        device_info: str,
        client_ip: str,
        location: str = "Unknown",
    ) -> LoginResult:
        """
        Authenticate and decide whether the device needs verification.

        Raises:
            InvalidCredentials: unknown email or wrong password
            CredentialExhausted: the device code could not be delivered
        """
        normalized_email = normalize_email(email)
        account = self.users.get_account(normalized_email)

        stored_hash = account.password_hash if account is not None else _DUMMY_BCRYPT_HASH
        password_valid = bcrypt.checkpw(password.encode(), stored_hash.encode())
        if account is None or not password_valid:
            raise InvalidCredentials()

        known_device = self.users.find_verified_device(account.id, device_info)
        if known_device is not None:
            self.users.touch_device(known_device, client_ip)
            return LoginResult(
                user_id=account.id,
                email=account.email,
                requires_verification=False,
                device_id=known_device,
                is_admin=account.is_admin,
                is_banned=account.is_banned,
            )

        device_id = str(uuid.uuid4())
        code = self.codes.issue(
            normalized_email,
            {
                "user_id": account.id,
                "device_id": device_id,
                "is_admin": account.is_admin,
                "is_banned": account.is_banned,
            },
        )
        html = device_email(code, location, self.ttl_minutes)

        try:
            result = self.executor.execute(
                lambda sender: self.transport.send(sender, normalized_email, DEVICE_SUBJECT, html),
                self.sender_pool,
            )
        except RecipientRejected:
            self.codes.discard(normalized_email)
            raise
        if not result.success:
            self.codes.discard(normalized_email)
            raise CredentialExhausted(
                "Unable to send verification email. Please try again later."
            )

        self.users.add_pending_device(device_id, account.id, client_ip, device_info, location)
        logger.info("New device %s pending verification for user %s", device_id, account.id)
        return LoginResult(
            user_id=account.id,
            email=account.email,
            requires_verification=True,
            device_id=device_id,
            is_admin=account.is_admin,
            is_banned=account.is_banned,
        )

    def verify_device(self, email: str, code: str) -> LoginResult:
        """
        Consume the device challenge and mark the device verified.

        Raises:
            VerificationError subclasses: challenge missing, expired, wrong, or locked
        """
        normalized_email = normalize_email(email)
        payload = require_valid(self.codes.check(normalized_email, code))

        self.users.confirm_device(payload["device_id"], payload["user_id"])
        return LoginResult(
            user_id=payload["user_id"],
            email=normalized_email,
            requires_verification=False,
            device_id=payload["device_id"],
            is_admin=bool(payload.get("is_admin")),
            is_banned=bool(payload.get("is_banned")),
        )
