"""
Credential administration - lifecycle of the two credential pools.

Credentials are never removed automatically; failing ones are only
deactivated by the pool. Administrators add, re-enable, and delete them
here. New credentials are validated against the provider before they are
stored.
"""

import logging
from dataclasses import dataclass

from .exceptions import ActionFailure, DeliveryError, NotFound, ValidationError
from .models import Credential, SenderSettings
from .ports import CredentialRegistry, DeploymentProvider, MailTransport

logger = logging.getLogger(__name__)

DEPLOY_KEYS = "deploy-keys"
EMAIL_SENDERS = "email-senders"

TEST_SUBJECT = "Test Email - Service Verification"
TEST_BODY = "<p>This is a test email to verify the email service is working.</p>"


@dataclass
class CredentialAdminService:
    deploy_keys: CredentialRegistry
    email_senders: CredentialRegistry
    provider: DeploymentProvider
    transport: MailTransport

    def registry(self, kind: str) -> CredentialRegistry:
        if kind == DEPLOY_KEYS:
            return self.deploy_keys
        if kind == EMAIL_SENDERS:
            return self.email_senders
        raise NotFound(f"Unknown credential pool: {kind}")

    def list_credentials(self, kind: str) -> list[Credential]:
        return self.registry(kind).list_all()

    def add_deploy_key(self, api_key: str) -> int:
        """
        Validate and store a deployment key.

        Raises:
            ValidationError: the provider rejects the key or it is already stored
        """
        api_key = api_key.strip()
        try:
            valid = self.provider.get_account(Credential(id=0, secret=api_key))
        except ActionFailure as e:
            logger.warning("Could not validate new deployment key: %s", e)
            raise ValidationError("Could not validate API key, try again later") from e
        if not valid:
            raise ValidationError("Invalid API key")

        if self.deploy_keys.identifier_exists(api_key):
            raise ValidationError("API key already exists")

        credential_id = self.deploy_keys.add_api_key(api_key)
        logger.info("Deployment key %s added", credential_id)
        return credential_id

    def add_email_sender(self, sender: SenderSettings) -> int:
        """
        Validate SMTP login and store an email sender.

        Raises:
            ValidationError: login fails or the mailbox is already stored
        """
        candidate = Credential(
            id=0,
            secret=sender.password,
            username=sender.email,
            host=sender.host,
            port=sender.port,
        )
        if not self.transport.verify(candidate):
            raise ValidationError("SMTP login failed for this sender")

        if self.email_senders.identifier_exists(sender.email):
            raise ValidationError("Email sender already exists")

        credential_id = self.email_senders.add_sender(sender)
        logger.info("Email sender %s added (%s)", credential_id, sender.email)
        return credential_id

    def set_active(self, kind: str, credential_id: int, is_active: bool) -> None:
        if not self.registry(kind).set_active(credential_id, is_active):
            raise NotFound("Credential not found")

    def delete(self, kind: str, credential_id: int) -> None:
        if not self.registry(kind).delete(credential_id):
            raise NotFound("Credential not found")

    def send_test_email(self, sender_id: int, recipient: str) -> None:
        """Send through one specific sender, bypassing rotation."""
        sender = self.email_senders.get(sender_id)
        if sender is None:
            raise NotFound("Email sender not found")
        try:
            self.transport.send(sender, recipient, TEST_SUBJECT, TEST_BODY)
        except ActionFailure as e:
            logger.warning("Test email through sender %s failed: %s", sender_id, e)
            raise DeliveryError("Failed to send test email") from e
