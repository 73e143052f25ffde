"""
API v1 app routes - bot deployments and their config vars.

Every route requires a logged-in, non-banned user; apps are only visible
to the user who deployed them.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from src.api.dependencies import get_deployment_service, get_session_user
from src.api.models import (
    AppNameResponse,
    ConfigVarsResponse,
    DeleteAppResponse,
    DeploymentResponse,
    DeployRequest,
    ErrorResponse,
    UpdateConfigVarsRequest,
)
from src.domain.deployment import DeploymentService

router = APIRouter(tags=["apps"])


@router.get("/check-app-name", response_model=AppNameResponse, summary="Check app name availability")
def check_app_name(
    app_name: str = Query(..., min_length=1, max_length=64),
    user: dict[str, Any] = Depends(get_session_user),
    service: DeploymentService = Depends(get_deployment_service),
) -> AppNameResponse:
    check = service.check_app_name(app_name.strip().lower())
    return AppNameResponse(
        exists=check.exists,
        reserved=check.reserved,
        provider_exists=check.provider_exists,
        error=check.error,
    )


@router.get("/deployments", response_model=list[DeploymentResponse], summary="List my apps")
def list_deployments(
    user: dict[str, Any] = Depends(get_session_user),
    service: DeploymentService = Depends(get_deployment_service),
) -> list[DeploymentResponse]:
    return [DeploymentResponse.from_record(d) for d in service.list_for_user(user["id"])]


@router.post(
    "/deployments",
    response_model=DeploymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "App name invalid or unavailable"},
        502: {"model": ErrorResponse, "description": "Provider rejected the app"},
        503: {"model": ErrorResponse, "description": "No deployment capacity"},
    },
    summary="Deploy a bot app",
)
def deploy(
    request_data: DeployRequest,
    user: dict[str, Any] = Depends(get_session_user),
    service: DeploymentService = Depends(get_deployment_service),
) -> DeploymentResponse:
    deployment = service.deploy(
        user["id"], request_data.bot_id, request_data.app_name, request_data.config_vars
    )
    return DeploymentResponse.from_record(deployment)


@router.delete(
    "/deployments/{app_name}",
    response_model=DeleteAppResponse,
    responses={404: {"model": ErrorResponse, "description": "App not found"}},
    summary="Delete a bot app",
)
def delete_deployment(
    app_name: str,
    user: dict[str, Any] = Depends(get_session_user),
    service: DeploymentService = Depends(get_deployment_service),
) -> DeleteAppResponse:
    result = service.delete(app_name, user["id"])
    return DeleteAppResponse(message=result.message, provider_deleted=result.provider_deleted)


@router.get(
    "/deployments/{app_name}/config-vars",
    response_model=ConfigVarsResponse,
    responses={404: {"model": ErrorResponse, "description": "App not found"}},
)
def get_config_vars(
    app_name: str,
    user: dict[str, Any] = Depends(get_session_user),
    service: DeploymentService = Depends(get_deployment_service),
) -> ConfigVarsResponse:
    return ConfigVarsResponse(
        app_name=app_name, config_vars=service.get_config_vars(app_name, user["id"])
    )


@router.post(
    "/deployments/{app_name}/config-vars",
    response_model=ConfigVarsResponse,
    responses={404: {"model": ErrorResponse, "description": "App not found"}},
)
def update_config_vars(
    app_name: str,
    request_data: UpdateConfigVarsRequest,
    user: dict[str, Any] = Depends(get_session_user),
    service: DeploymentService = Depends(get_deployment_service),
) -> ConfigVarsResponse:
    config_vars = service.update_config_vars(app_name, user["id"], request_data.config_vars)
    return ConfigVarsResponse(app_name=app_name, config_vars=config_vars)


@router.delete(
    "/deployments/{app_name}/config-vars/{var_name}",
    response_model=ConfigVarsResponse,
    responses={404: {"model": ErrorResponse, "description": "App or variable not found"}},
)
def delete_config_var(
    app_name: str,
    var_name: str,
    user: dict[str, Any] = Depends(get_session_user),
    service: DeploymentService = Depends(get_deployment_service),
) -> ConfigVarsResponse:
    config_vars = service.delete_config_var(app_name, user["id"], var_name)
    return ConfigVarsResponse(app_name=app_name, config_vars=config_vars)
