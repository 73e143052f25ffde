"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from src.domain.models import Credential, Deployment, UserRecord


class MessageResponse(BaseModel):
    """Standard success/error envelope."""

    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Error body produced by the domain exception handlers."""

    success: bool = False
    message: str
    attempts_left: int | None = None


class SignupRequest(BaseModel):
    """Request model for user registration."""

    email: EmailStr
    password: str = Field(..., min_length=8, description="User password (min 8 characters)")
    username: str = Field(..., min_length=3, max_length=15, pattern=r"^[A-Za-z0-9_]+$")
    country: str | None = Field(None, max_length=64)
    referral_code: str | None = Field(None, max_length=16)


class SignupResponse(BaseModel):
    success: bool = True
    message: str
    email: str
    expires_in_seconds: int


class VerifyCodeRequest(BaseModel):
    """Request model for signup and device verification."""

    email: EmailStr
    code: str = Field(
        ...,
        min_length=6,
        max_length=6,
        pattern=r"^[A-Za-z0-9]{6}$",
        description="6-character verification code",
    )


class UserResponse(BaseModel):
    id: int
    email: str
    username: str
    referral_code: str
    country: str | None
    status: str
    is_banned: bool

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            referral_code=user.referral_code,
            country=user.country,
            status=user.status,
            is_banned=user.is_banned,
        )


class VerifySignupResponse(BaseModel):
    success: bool = True
    message: str
    user: UserResponse


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    success: bool = True
    message: str
    requires_verification: bool
    is_banned: bool = False


class SessionUser(BaseModel):
    id: int
    email: str
    is_verified: bool
    is_banned: bool
    is_admin: bool
    device_id: str


class CheckLoginResponse(BaseModel):
    user: SessionUser


class AppNameResponse(BaseModel):
    exists: bool
    reserved: bool
    provider_exists: bool
    error: str | None = None


class DeployRequest(BaseModel):
    bot_id: int = Field(..., gt=0)
    app_name: str = Field(..., min_length=3, max_length=30, pattern=r"^[a-z0-9-]+$")
    config_vars: dict[str, str | None] = Field(default_factory=dict)


class DeploymentResponse(BaseModel):
    id: int
    bot_id: int
    app_name: str
    status: str

    @classmethod
    def from_record(cls, deployment: Deployment) -> "DeploymentResponse":
        return cls(
            id=deployment.id,
            bot_id=deployment.bot_id,
            app_name=deployment.app_name,
            status=deployment.status,
        )


class DeleteAppResponse(BaseModel):
    success: bool = True
    message: str
    provider_deleted: bool


class ConfigVarsResponse(BaseModel):
    app_name: str
    config_vars: dict[str, Any]


class UpdateConfigVarsRequest(BaseModel):
    config_vars: dict[str, str | None] = Field(..., min_length=1)


class CredentialResponse(BaseModel):
    """Credential as shown to administrators; the secret is always masked."""

    id: int
    masked_secret: str
    username: str | None
    is_active: bool
    usage_count: int
    daily_limit: int | None
    failed_attempts: int
    last_checked: datetime | None
    last_used: datetime | None
    last_error: str | None

    @classmethod
    def from_record(cls, credential: Credential) -> "CredentialResponse":
        return cls(
            id=credential.id,
            masked_secret=credential.masked,
            username=credential.username,
            is_active=credential.is_active,
            usage_count=credential.usage_count,
            daily_limit=credential.daily_limit,
            failed_attempts=credential.failed_attempts,
            last_checked=credential.last_checked,
            last_used=credential.last_used,
            last_error=credential.last_error,
        )


class AddDeployKeyRequest(BaseModel):
    api_key: str = Field(..., min_length=8, max_length=255)


class AddEmailSenderRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    host: str = Field(..., min_length=1)
    port: int = Field(587, gt=0, lt=65536)
    daily_limit: int = Field(500, gt=0)


class CreatedResponse(BaseModel):
    success: bool = True
    message: str
    id: int


class SetActiveRequest(BaseModel):
    is_active: bool


class SendTestEmailRequest(BaseModel):
    recipient: EmailStr
