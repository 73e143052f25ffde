"""
API v1 auth routes - signup, login, device verification, session.

Handlers are plain ``def`` functions: they call blocking SMTP and
database code, so FastAPI runs them in its worker threadpool.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, status

from src.api.dependencies import (
    SESSION_KEY,
    get_client_ip,
    get_login_service,
    get_registration_service,
    get_session_user,
)
from src.api.models import (
    CheckLoginResponse,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SignupRequest,
    SignupResponse,
    UserResponse,
    VerifyCodeRequest,
    VerifySignupResponse,
)
from src.config.settings import get_settings
from src.domain import models as domain
from src.domain.login import LoginService
from src.domain.registration import RegistrationService

router = APIRouter(tags=["auth"])

# Set by Cloudflare in front of the app
LOCATION_HEADER = "cf-ipcountry"


def _start_session(request: Request, login: domain.LoginResult) -> None:
    request.session[SESSION_KEY] = {
        "id": login.user_id,
        "email": login.email,
        "is_verified": True,
        "is_banned": login.is_banned,
        "is_admin": login.is_admin,
        "device_id": login.device_id,
    }


@router.post(
    "/signup",
    response_model=SignupResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input or already registered"},
        503: {"model": ErrorResponse, "description": "Verification email could not be sent"},
    },
    summary="Request a signup verification code",
)
def signup(
    request_data: SignupRequest,
    client_ip: str = Depends(get_client_ip),
    service: RegistrationService = Depends(get_registration_service),
) -> SignupResponse:
    """
    Validate the signup form and email a 6-character verification code.

    Nothing is stored in the database until the code is verified.
    """
    email = service.request_signup(
        domain.SignupRequest(
            email=request_data.email,
            password=request_data.password,
            username=request_data.username,
            country=request_data.country,
            referral_code=request_data.referral_code,
            client_ip=client_ip,
        )
    )
    return SignupResponse(
        message="Verification code sent to your email",
        email=email,
        expires_in_seconds=get_settings().verification_ttl_seconds,
    )


@router.post(
    "/verify-signup",
    response_model=VerifySignupResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Code missing, expired or wrong"},
        429: {"model": ErrorResponse, "description": "Too many incorrect attempts"},
        500: {"model": ErrorResponse, "description": "Account creation failed"},
    },
    summary="Verify the signup code and create the account",
)
def verify_signup(
    request_data: VerifyCodeRequest,
    request: Request,
    service: RegistrationService = Depends(get_registration_service),
) -> VerifySignupResponse:
    user = service.verify_signup(request_data.email, request_data.code)
    request.session[SESSION_KEY] = {
        "id": user.id,
        "email": user.email,
        "is_verified": True,
        "is_banned": user.is_banned,
        "is_admin": False,
        "device_id": "",
    }
    message = "Account created" if not user.is_banned else "Account created but restricted"
    return VerifySignupResponse(message=message, user=UserResponse.from_record(user))


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        503: {"model": ErrorResponse, "description": "Verification email could not be sent"},
    },
    summary="Log in with email and password",
)
def login(
    request_data: LoginRequest,
    request: Request,
    client_ip: str = Depends(get_client_ip),
    service: LoginService = Depends(get_login_service),
) -> LoginResponse:
    """
    Log in directly from a verified device, otherwise email a device code.
    """
    result = service.login(
        request_data.email,
        request_data.password,
        device_info=request.headers.get("user-agent", "unknown"),
        client_ip=client_ip,
        location=request.headers.get(LOCATION_HEADER, "Unknown"),
    )
    if result.requires_verification:
        return LoginResponse(
            message="Please verify this device with the code sent to your email",
            requires_verification=True,
        )

    _start_session(request, result)
    return LoginResponse(
        message="Login successful", requires_verification=False, is_banned=result.is_banned
    )


@router.post(
    "/verify-device-login",
    response_model=LoginResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Code missing, expired or wrong"},
        429: {"model": ErrorResponse, "description": "Too many incorrect attempts"},
    },
    summary="Verify a new device and finish logging in",
)
def verify_device_login(
    request_data: VerifyCodeRequest,
    request: Request,
    service: LoginService = Depends(get_login_service),
) -> LoginResponse:
    result = service.verify_device(request_data.email, request_data.code)
    _start_session(request, result)
    return LoginResponse(
        message="Device verified, login successful",
        requires_verification=False,
        is_banned=result.is_banned,
    )


@router.get(
    "/check-login",
    response_model=CheckLoginResponse,
    summary="Return the logged-in user",
)
def check_login(user: dict[str, Any] = Depends(get_session_user)) -> CheckLoginResponse:
    return CheckLoginResponse(user=user)


@router.post("/logout", response_model=MessageResponse, status_code=status.HTTP_200_OK)
def logout(request: Request) -> MessageResponse:
    request.session.clear()
    return MessageResponse(message="Logged out")
