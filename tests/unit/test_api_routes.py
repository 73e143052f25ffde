"""
Unit tests for API v1 routes.

Tests endpoint responses with mocked dependencies.
"""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.middleware.sessions import SessionMiddleware

from src.api.dependencies import (
    get_credential_admin_service,
    get_deployment_service,
    get_login_service,
    get_registration_service,
    get_session_user,
    get_user_repository,
)
from src.api.errors import register_exception_handlers
from src.api.v1 import router
from src.domain.credential_admin import CredentialAdminService
from src.domain.deployment import DeploymentService
from src.domain.exceptions import (
    AttemptsExceeded,
    CredentialExhausted,
    InvalidCredentials,
    NotFound,
    TransactionFailure,
    ValidationError,
    VerificationMismatch,
)
from src.domain.login import LoginService
from src.domain.models import (
    Credential,
    DeleteResult,
    Deployment,
    LoginResult,
    UserRecord,
)
from src.domain.registration import RegistrationService

SESSION_USER = {
    "id": 10,
    "email": "alice@gmail.com",
    "is_verified": True,
    "is_banned": False,
    "is_admin": False,
    "device_id": "dev-1",
}
ADMIN_USER = {**SESSION_USER, "id": 1, "is_admin": True}


@pytest.fixture
def app() -> FastAPI:
    """Create test FastAPI application."""
    test_app = FastAPI()
    test_app.add_middleware(SessionMiddleware, secret_key="test-secret")
    register_exception_handlers(test_app)
    test_app.include_router(router, prefix="/v1")

    # Mock the app.state.pool for dependency injection
    test_app.state.pool = MagicMock()
    yield test_app
    test_app.dependency_overrides.clear()


def override(app: FastAPI, dependency, value) -> None:
    app.dependency_overrides[dependency] = lambda: value


class TestSignupEndpoint:
    """Tests for POST /v1/signup."""

    def test_signup_success(self, app: FastAPI) -> None:
        service = MagicMock(spec=RegistrationService)
        service.request_signup.return_value = "alice@gmail.com"
        override(app, get_registration_service, service)

        response = TestClient(app).post(
            "/v1/signup",
            json={"email": "alice@gmail.com", "password": "password123", "username": "alice"},
            headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.1"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["email"] == "alice@gmail.com"
        assert body["expires_in_seconds"] == 1800
        request = service.request_signup.call_args[0][0]
        assert request.username == "alice"
        assert request.client_ip == "203.0.113.5"

    def test_private_forwarded_ip_ignored(self, app: FastAPI) -> None:
        service = MagicMock(spec=RegistrationService)
        service.request_signup.return_value = "alice@gmail.com"
        override(app, get_registration_service, service)

        TestClient(app).post(
            "/v1/signup",
            json={"email": "alice@gmail.com", "password": "password123", "username": "alice"},
            headers={"X-Forwarded-For": "192.168.1.10", "X-Real-IP": "198.51.100.7"},
        )

        assert service.request_signup.call_args[0][0].client_ip == "198.51.100.7"

    def test_domain_validation_error_is_400(self, app: FastAPI) -> None:
        service = MagicMock(spec=RegistrationService)
        service.request_signup.side_effect = ValidationError("Email already registered")
        override(app, get_registration_service, service)

        response = TestClient(app).post(
            "/v1/signup",
            json={"email": "alice@gmail.com", "password": "password123", "username": "alice"},
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Email already registered"}

    def test_exhausted_senders_is_503(self, app: FastAPI) -> None:
        service = MagicMock(spec=RegistrationService)
        service.request_signup.side_effect = CredentialExhausted()
        override(app, get_registration_service, service)

        response = TestClient(app).post(
            "/v1/signup",
            json={"email": "alice@gmail.com", "password": "password123", "username": "alice"},
        )

        assert response.status_code == 503

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "not-an-email", "password": "password123", "username": "alice"},
            {"email": "alice@gmail.com", "password": "short", "username": "alice"},
            {"email": "alice@gmail.com", "password": "password123", "username": "a!"},
            {"email": "alice@gmail.com", "password": "password123"},
        ],
    )
    def test_request_validation_is_422(self, app: FastAPI, payload: dict) -> None:
        override(app, get_registration_service, MagicMock(spec=RegistrationService))
        assert TestClient(app).post("/v1/signup", json=payload).status_code == 422


class TestVerifySignupEndpoint:
    """Tests for POST /v1/verify-signup."""

    def test_verify_creates_session(self, app: FastAPI) -> None:
        service = MagicMock(spec=RegistrationService)
        service.verify_signup.return_value = UserRecord(
            10, "alice@gmail.com", "alice", "AB12CD34", "PK", False
        )
        override(app, get_registration_service, service)
        override(app, get_user_repository, MagicMock(**{"is_banned.return_value": False}))
        client = TestClient(app)

        response = client.post("/v1/verify-signup", json={"email": "alice@gmail.com", "code": "abc123"})

        assert response.status_code == 200
        assert response.json()["user"]["status"] == "active"
        assert client.get("/v1/check-login").json()["user"]["id"] == 10

    def test_mismatch_includes_attempts_left(self, app: FastAPI) -> None:
        service = MagicMock(spec=RegistrationService)
        service.verify_signup.side_effect = VerificationMismatch(attempts_left=2)
        override(app, get_registration_service, service)

        response = TestClient(app).post(
            "/v1/verify-signup", json={"email": "alice@gmail.com", "code": "ABC123"}
        )

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Invalid verification code",
            "attempts_left": 2,
        }

    def test_attempts_exceeded_is_429(self, app: FastAPI) -> None:
        service = MagicMock(spec=RegistrationService)
        service.verify_signup.side_effect = AttemptsExceeded()
        override(app, get_registration_service, service)

        response = TestClient(app).post(
            "/v1/verify-signup", json={"email": "alice@gmail.com", "code": "ABC123"}
        )

        assert response.status_code == 429

    def test_transaction_failure_is_500(self, app: FastAPI) -> None:
        service = MagicMock(spec=RegistrationService)
        service.verify_signup.side_effect = TransactionFailure()
        override(app, get_registration_service, service)

        response = TestClient(app).post(
            "/v1/verify-signup", json={"email": "alice@gmail.com", "code": "ABC123"}
        )

        assert response.status_code == 500
        assert response.json()["message"] == "Account creation failed"

    def test_code_format_validated(self, app: FastAPI) -> None:
        override(app, get_registration_service, MagicMock(spec=RegistrationService))
        response = TestClient(app).post(
            "/v1/verify-signup", json={"email": "alice@gmail.com", "code": "12345"}
        )
        assert response.status_code == 422


class TestLoginEndpoints:
    """Tests for login and device verification."""

    def test_login_known_device_sets_session(self, app: FastAPI) -> None:
        service = MagicMock(spec=LoginService)
        service.login.return_value = LoginResult(10, "alice@gmail.com", False, "dev-1")
        override(app, get_login_service, service)
        override(app, get_user_repository, MagicMock(**{"is_banned.return_value": False}))
        client = TestClient(app)

        response = client.post(
            "/v1/login",
            json={"email": "alice@gmail.com", "password": "password123"},
            headers={"User-Agent": "pytest-agent"},
        )

        assert response.status_code == 200
        assert response.json()["requires_verification"] is False
        assert service.login.call_args.kwargs["device_info"] == "pytest-agent"
        assert client.get("/v1/check-login").status_code == 200

    def test_login_new_device_has_no_session(self, app: FastAPI) -> None:
        service = MagicMock(spec=LoginService)
        service.login.return_value = LoginResult(10, "alice@gmail.com", True, "dev-2")
        override(app, get_login_service, service)
        client = TestClient(app)

        response = client.post(
            "/v1/login", json={"email": "alice@gmail.com", "password": "password123"}
        )

        assert response.json()["requires_verification"] is True
        unauthenticated = client.get("/v1/check-login")
        assert unauthenticated.status_code == 401
        assert unauthenticated.json() == {"success": False, "message": "User not logged in"}

    def test_invalid_credentials_is_401(self, app: FastAPI) -> None:
        service = MagicMock(spec=LoginService)
        service.login.side_effect = InvalidCredentials()
        override(app, get_login_service, service)

        response = TestClient(app).post(
            "/v1/login", json={"email": "alice@gmail.com", "password": "password123"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_verify_device_then_logout(self, app: FastAPI) -> None:
        service = MagicMock(spec=LoginService)
        service.verify_device.return_value = LoginResult(10, "alice@gmail.com", False, "dev-2")
        override(app, get_login_service, service)
        override(app, get_user_repository, MagicMock(**{"is_banned.return_value": False}))
        client = TestClient(app)

        response = client.post(
            "/v1/verify-device-login", json={"email": "alice@gmail.com", "code": "XYZ789"}
        )
        assert response.status_code == 200
        assert client.get("/v1/check-login").json()["user"]["device_id"] == "dev-2"

        client.post("/v1/logout")
        assert client.get("/v1/check-login").status_code == 401

    def test_banned_user_is_403(self, app: FastAPI) -> None:
        service = MagicMock(spec=LoginService)
        service.login.return_value = LoginResult(10, "alice@gmail.com", False, "dev-1")
        override(app, get_login_service, service)
        override(app, get_user_repository, MagicMock(**{"is_banned.return_value": True}))
        client = TestClient(app)

        client.post("/v1/login", json={"email": "alice@gmail.com", "password": "password123"})

        response = client.get("/v1/check-login")
        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Account is banned"}


class TestAppEndpoints:
    """Tests for deployment routes."""

    def test_requires_login(self, app: FastAPI) -> None:
        override(app, get_deployment_service, MagicMock(spec=DeploymentService))
        assert TestClient(app).get("/v1/deployments").status_code == 401

    def test_deploy(self, app: FastAPI) -> None:
        service = MagicMock(spec=DeploymentService)
        service.deploy.return_value = Deployment(5, 10, 1, "my-bot", "active", 2)
        override(app, get_deployment_service, service)
        override(app, get_session_user, SESSION_USER)

        response = TestClient(app).post(
            "/v1/deployments",
            json={"bot_id": 1, "app_name": "my-bot", "config_vars": {"SESSION_ID": "abc"}},
        )

        assert response.status_code == 201
        assert response.json()["app_name"] == "my-bot"
        service.deploy.assert_called_once_with(10, 1, "my-bot", {"SESSION_ID": "abc"})

    def test_delete_reports_provider_result(self, app: FastAPI) -> None:
        service = MagicMock(spec=DeploymentService)
        service.delete.return_value = DeleteResult("my-bot", False, "provider deletion failed")
        override(app, get_deployment_service, service)
        override(app, get_session_user, SESSION_USER)

        response = TestClient(app).delete("/v1/deployments/my-bot")

        assert response.status_code == 200
        assert response.json()["provider_deleted"] is False
        service.delete.assert_called_once_with("my-bot", 10)

    def test_missing_config_var_is_404(self, app: FastAPI) -> None:
        service = MagicMock(spec=DeploymentService)
        service.delete_config_var.side_effect = NotFound("Variable X does not exist")
        override(app, get_deployment_service, service)
        override(app, get_session_user, SESSION_USER)

        response = TestClient(app).delete("/v1/deployments/my-bot/config-vars/X")

        assert response.status_code == 404
        assert response.json()["message"] == "Variable X does not exist"


class TestAdminEndpoints:
    """Tests for credential administration routes."""

    def test_non_admin_forbidden(self, app: FastAPI) -> None:
        override(app, get_credential_admin_service, MagicMock(spec=CredentialAdminService))
        override(app, get_session_user, SESSION_USER)

        response = TestClient(app).get("/v1/admin/credentials/deploy-keys")

        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Admin access required"}

    def test_list_masks_secrets(self, app: FastAPI) -> None:
        service = MagicMock(spec=CredentialAdminService)
        service.list_credentials.return_value = [
            Credential(id=1, secret="0123456789abcdef0123456789abcdef")
        ]
        override(app, get_credential_admin_service, service)
        override(app, get_session_user, ADMIN_USER)

        response = TestClient(app).get("/v1/admin/credentials/deploy-keys")

        assert response.status_code == 200
        item = response.json()[0]
        assert item["masked_secret"] == "01234567...89abcdef"
        assert "secret" not in item

    def test_add_deploy_key(self, app: FastAPI) -> None:
        service = MagicMock(spec=CredentialAdminService)
        service.add_deploy_key.return_value = 3
        override(app, get_credential_admin_service, service)
        override(app, get_session_user, ADMIN_USER)

        response = TestClient(app).post(
            "/v1/admin/credentials/deploy-keys", json={"api_key": "new-key-12345"}
        )

        assert response.status_code == 201
        assert response.json()["id"] == 3

    def test_toggle_active(self, app: FastAPI) -> None:
        service = MagicMock(spec=CredentialAdminService)
        override(app, get_credential_admin_service, service)
        override(app, get_session_user, ADMIN_USER)

        response = TestClient(app).patch(
            "/v1/admin/credentials/email-senders/4", json={"is_active": False}
        )

        assert response.status_code == 200
        service.set_active.assert_called_once_with("email-senders", 4, False)
