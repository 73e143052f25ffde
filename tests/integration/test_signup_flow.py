"""
End-to-end tests for signup and login through the HTTP API.

The real application, dependencies and PostgreSQL adapters are used;
the console mail transport stands in for SMTP, and the verification
codes are read back from its log records.
"""

import logging
import re
from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from psycopg_pool import ConnectionPool

from src.adapters.provider.heroku import HerokuClient
from src.adapters.repository.credentials import EMAIL_SENDERS_TABLE, PostgresCredentialPool
from src.adapters.smtp.console import ConsoleMailTransport
from src.adapters.verification import InMemoryVerificationStore
from src.api.main import app as application
from src.domain.credentials import ActionExecutor
from src.domain.models import SenderSettings

pytestmark = pytest.mark.integration

CODE_PATTERN = re.compile(r"Code: ([A-Z0-9]{6})")
PUBLIC_IP = {"X-Forwarded-For": "203.0.113.5"}


@pytest.fixture
def app(pool: ConnectionPool) -> Generator[FastAPI, None, None]:
    """The real app with lifespan singletons wired by hand."""
    application.state.pool = pool
    application.state.signup_codes = InMemoryVerificationStore(max_attempts=5)
    application.state.device_codes = InMemoryVerificationStore(max_attempts=3)
    application.state.transport = ConsoleMailTransport()
    application.state.provider = HerokuClient()
    application.state.executor = ActionExecutor()
    yield application
    application.state.provider.close()


@pytest.fixture
def sender_id(pool: ConnectionPool) -> int:
    senders = PostgresCredentialPool(pool, EMAIL_SENDERS_TABLE)
    return senders.add_sender(
        SenderSettings("noreply@gmail.com", "app-password", "smtp.gmail.com", 587)
    )


def last_code(caplog: pytest.LogCaptureFixture) -> str:
    codes = CODE_PATTERN.findall(caplog.text)
    assert codes, "no verification code was logged"
    return codes[-1]


def signup(client: TestClient, email: str, username: str) -> None:
    response = client.post(
        "/v1/signup",
        json={"email": email, "password": "password123", "username": username},
        headers=PUBLIC_IP,
    )
    assert response.status_code == 200, response.text


class TestSignupFlow:
    """Signup, verification and login end to end."""

    def test_signup_verify_and_login(
        self, app: FastAPI, sender_id: int, pool: ConnectionPool, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = TestClient(app)
        with caplog.at_level(logging.INFO):
            signup(client, "alice@gmail.com", "alice")
        code = last_code(caplog)

        response = client.post(
            "/v1/verify-signup", json={"email": "alice@gmail.com", "code": code.lower()}
        )

        assert response.status_code == 200, response.text
        assert response.json()["user"]["is_banned"] is False
        assert client.get("/v1/check-login").json()["user"]["email"] == "alice@gmail.com"

        # Sender usage was counted once
        with pool.connection() as conn:
            usage = conn.execute(
                "SELECT usage_count FROM email_senders WHERE id = %s", (sender_id,)
            ).fetchone()[0]
        assert usage == 1

        # Code is single use
        replay = client.post("/v1/verify-signup", json={"email": "alice@gmail.com", "code": code})
        assert replay.status_code == 400

    def test_second_account_from_same_ip_is_banned(
        self, app: FastAPI, sender_id: int, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = TestClient(app)
        for email, username in (("first@gmail.com", "first"), ("second@gmail.com", "second")):
            with caplog.at_level(logging.INFO):
                signup(client, email, username)
            response = client.post(
                "/v1/verify-signup", json={"email": email, "code": last_code(caplog)}
            )
            assert response.status_code == 200

        assert response.json()["user"]["status"] == "banned"
        assert client.get("/v1/check-login").status_code == 403

    def test_no_sender_means_503_and_no_pending_code(self, app: FastAPI) -> None:
        client = TestClient(app)

        response = client.post(
            "/v1/signup",
            json={"email": "alice@gmail.com", "password": "password123", "username": "alice"},
        )

        assert response.status_code == 503
        assert len(app.state.signup_codes) == 0

    def test_new_device_login_requires_code(
        self, app: FastAPI, sender_id: int, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = TestClient(app)
        with caplog.at_level(logging.INFO):
            signup(client, "alice@gmail.com", "alice")
        client.post(
            "/v1/verify-signup", json={"email": "alice@gmail.com", "code": last_code(caplog)}
        )
        client.post("/v1/logout")

        with caplog.at_level(logging.INFO):
            response = client.post(
                "/v1/login",
                json={"email": "alice@gmail.com", "password": "password123"},
                headers={"User-Agent": "integration-agent"},
            )
        assert response.json()["requires_verification"] is True

        response = client.post(
            "/v1/verify-device-login",
            json={"email": "alice@gmail.com", "code": last_code(caplog)},
        )
        assert response.status_code == 200

        client.post("/v1/logout")
        again = client.post(
            "/v1/login",
            json={"email": "alice@gmail.com", "password": "password123"},
            headers={"User-Agent": "integration-agent"},
        )
        assert again.json()["requires_verification"] is False

    def test_wrong_password_is_401(self, app: FastAPI) -> None:
        response = TestClient(app).post(
            "/v1/login", json={"email": "ghost@gmail.com", "password": "password123"}
        )
        assert response.status_code == 401
