"""
SMTP mail transport - Implements MailTransport protocol via smtplib.

Each call opens a connection with the sender account carried by the
credential. Port 465 uses implicit TLS; any other port upgrades with
STARTTLS when the server offers it.

Errors are split by who is at fault:
- the server refuses the recipient, or permanently rejects the message
  after a successful login: RecipientRejected, the sender stays healthy
- anything else (login, sender refusal, socket errors, transient
  replies): CredentialFailure, so the executor rotates to the next sender
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage

from src.domain.exceptions import CredentialFailure, RecipientRejected
from src.domain.models import Credential

logger = logging.getLogger(__name__)

FROM_NAME = "TalkDrove Verification"


class SmtpMailTransport:
    """
    Implements MailTransport protocol via smtplib.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self._timeout = timeout_seconds

    def send(self, credential: Credential, recipient: str, subject: str, html_body: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{FROM_NAME} <{credential.username}>"
        msg["To"] = recipient
        msg.set_content("Please view this message in an HTML-capable email client.")
        msg.add_alternative(html_body, subtype="html")

        try:
            with self._connect(credential) as server:
                server.login(credential.username, credential.secret)
                try:
                    server.send_message(msg)
                except smtplib.SMTPRecipientsRefused as e:
                    raise RecipientRejected() from e
                except smtplib.SMTPDataError as e:
                    if e.smtp_code < 500:
                        raise
                    raise RecipientRejected() from e
        except RecipientRejected:
            logger.warning("Recipient %s rejected by sender %s's server", recipient, credential.id)
            raise
        except smtplib.SMTPAuthenticationError as e:
            raise CredentialFailure(f"SMTP authentication failed for {credential.username}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise CredentialFailure(f"SMTP delivery failed: {e}") from e

        logger.info("Email sent to %s via sender %s", recipient, credential.id)

    def verify(self, credential: Credential) -> bool:
        try:
            with self._connect(credential) as server:
                server.login(credential.username, credential.secret)
                server.noop()
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP verification failed for %s: %s", credential.username, e)
            return False
        return True

    def _connect(self, credential: Credential) -> smtplib.SMTP:
        if credential.port == 465:
            return smtplib.SMTP_SSL(
                credential.host,
                credential.port,
                timeout=self._timeout,
                context=ssl.create_default_context(),
            )
        server = smtplib.SMTP(credential.host, credential.port, timeout=self._timeout)
        try:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls(context=ssl.create_default_context())
                server.ehlo()
        except (smtplib.SMTPException, OSError):
            server.close()
            raise
        return server
