"""
Registration domain service - verified signup.

Signup State Machine
====================

    NoChallenge -> ChallengeIssued            request_signup()
    ChallengeIssued -> Verified -> Committed  verify_signup() with the right code
    ChallengeIssued -> Expired                code older than the TTL
    ChallengeIssued -> AttemptsExceeded       too many wrong codes

Expired and AttemptsExceeded are terminal; the user must call
request_signup() again. Nothing is written to the database before the
Committed step, which is a single transaction in the user repository
(user, IP tracking, referral credit, country, wallet).

The verification code is delivered through the ActionExecutor over the
email sender pool: senders are tried least-used first until one accepts
the message.
"""

import logging
import re
from dataclasses import dataclass, field

import bcrypt

from .credentials import ActionExecutor
from .emails import SIGNUP_SUBJECT, signup_email
from .exceptions import CredentialExhausted, RecipientRejected, ValidationError
from .models import UNKNOWN_IP, SignupRequest, UserRecord
from .ports import CredentialPool, MailTransport, UserRepository, VerificationStore
from .verification import normalize_email, require_valid

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,15}$")
MIN_PASSWORD_LENGTH = 8


@dataclass
class RegistrationService:
    """
    Domain service for user registration.

    Orchestrates the signup flow: input validation, password hashing,
    challenge issue and delivery, and the final registration transaction.
    """

    users: UserRepository
    codes: VerificationStore
    executor: ActionExecutor
    sender_pool: CredentialPool
    transport: MailTransport
    allowed_domains: list[str] = field(default_factory=lambda: ["gmail.com", "talkdrove.com"])
    bcrypt_cost: int = 10
    ttl_minutes: int = 30

    def request_signup(self, request: SignupRequest) -> str:
        """
        Validate a signup request and email a verification code.

        Returns:
            Normalized email address (the challenge key)

        Raises:
            ValidationError: bad input, email registered, or username taken
            RecipientRejected: the mail server refused the address
            CredentialExhausted: no email sender could deliver the code
        """
        email = normalize_email(request.email)
        username = request.username.strip()
        self._validate(email, request.password, username)

        if self.users.email_exists(email):
            raise ValidationError("Email already registered")
        if self.users.username_exists(username):
            raise ValidationError("Username is already taken")

        referred_by = None
        if request.referral_code:
            referred_by = self.users.find_referrer_id(request.referral_code.strip().upper())

        payload = {
            "password_hash": self._hash_password(request.password),
            "username": username,
            "country": request.country,
            "referred_by": referred_by,
            "client_ip": request.client_ip,
        }
        code = self.codes.issue(email, payload)
        html = signup_email(code, self.ttl_minutes)

        try:
            result = self.executor.execute(
                lambda sender: self.transport.send(sender, email, SIGNUP_SUBJECT, html),
                self.sender_pool,
            )
        except RecipientRejected:
            self.codes.discard(email)
            raise
        if not result.success:
            self.codes.discard(email)
            raise CredentialExhausted(
                "Unable to send verification email. Please try again later."
            )

        logger.info("Signup code for %s sent with sender %s", email, result.credential.id)
        return email

    def verify_signup(self, email: str, code: str) -> UserRecord:
        """
        Consume the signup challenge and create the account.

        Raises:
            VerificationError subclasses: challenge missing, expired, wrong, or locked
            TransactionFailure: the registration transaction rolled back
        """
        normalized_email = normalize_email(email)
        payload = require_valid(self.codes.check(normalized_email, code))
        payload["email"] = normalized_email

        user = self.users.create_user(payload, payload.get("client_ip") or UNKNOWN_IP)
        if user.is_banned:
            logger.warning("Account %s created banned (IP %s)", user.id, payload.get("client_ip"))
        return user

    def _validate(self, email: str, password: str, username: str) -> None:
        if not USERNAME_PATTERN.match(username):
            raise ValidationError(
                "Username must be 3-15 characters: letters, numbers, and underscores"
            )
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password must be at least 8 characters long")

        domain = email.rpartition("@")[2]
        if domain not in self.allowed_domains:
            raise ValidationError("Email domain is not allowed")

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()
