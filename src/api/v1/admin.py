"""
API v1 admin routes - credential pool management.

``kind`` is ``deploy-keys`` or ``email-senders``. Secrets are returned
masked only.
"""

from typing import Any

from fastapi import APIRouter, Depends, status

from src.api.dependencies import get_credential_admin_service, require_admin
from src.api.models import (
    AddDeployKeyRequest,
    AddEmailSenderRequest,
    CreatedResponse,
    CredentialResponse,
    ErrorResponse,
    MessageResponse,
    SendTestEmailRequest,
    SetActiveRequest,
)
from src.domain.credential_admin import CredentialAdminService
from src.domain.models import SenderSettings

router = APIRouter(prefix="/admin/credentials", tags=["admin"])


@router.get("/{kind}", response_model=list[CredentialResponse])
def list_credentials(
    kind: str,
    admin: dict[str, Any] = Depends(require_admin),
    service: CredentialAdminService = Depends(get_credential_admin_service),
) -> list[CredentialResponse]:
    return [CredentialResponse.from_record(c) for c in service.list_credentials(kind)]


@router.post(
    "/deploy-keys",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Invalid or duplicate key"}},
)
def add_deploy_key(
    request_data: AddDeployKeyRequest,
    admin: dict[str, Any] = Depends(require_admin),
    service: CredentialAdminService = Depends(get_credential_admin_service),
) -> CreatedResponse:
    credential_id = service.add_deploy_key(request_data.api_key)
    return CreatedResponse(message="API key added", id=credential_id)


@router.post(
    "/email-senders",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "SMTP login failed or duplicate"}},
)
def add_email_sender(
    request_data: AddEmailSenderRequest,
    admin: dict[str, Any] = Depends(require_admin),
    service: CredentialAdminService = Depends(get_credential_admin_service),
) -> CreatedResponse:
    credential_id = service.add_email_sender(
        SenderSettings(
            email=request_data.email,
            password=request_data.password,
            host=request_data.host,
            port=request_data.port,
            daily_limit=request_data.daily_limit,
        )
    )
    return CreatedResponse(message="Email sender added", id=credential_id)


@router.patch("/{kind}/{credential_id}", response_model=MessageResponse)
def set_active(
    kind: str,
    credential_id: int,
    request_data: SetActiveRequest,
    admin: dict[str, Any] = Depends(require_admin),
    service: CredentialAdminService = Depends(get_credential_admin_service),
) -> MessageResponse:
    service.set_active(kind, credential_id, request_data.is_active)
    state = "activated" if request_data.is_active else "deactivated"
    return MessageResponse(message=f"Credential {state}")


@router.delete("/{kind}/{credential_id}", response_model=MessageResponse)
def delete_credential(
    kind: str,
    credential_id: int,
    admin: dict[str, Any] = Depends(require_admin),
    service: CredentialAdminService = Depends(get_credential_admin_service),
) -> MessageResponse:
    service.delete(kind, credential_id)
    return MessageResponse(message="Credential deleted")


@router.post(
    "/email-senders/{credential_id}/test",
    response_model=MessageResponse,
    responses={502: {"model": ErrorResponse, "description": "Delivery failed"}},
)
def send_test_email(
    credential_id: int,
    request_data: SendTestEmailRequest,
    admin: dict[str, Any] = Depends(require_admin),
    service: CredentialAdminService = Depends(get_credential_admin_service),
) -> MessageResponse:
    service.send_test_email(credential_id, request_data.recipient)
    return MessageResponse(message="Test email sent")
