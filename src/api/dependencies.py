"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.

Process-wide singletons (connection pool, verification stores, mail
transport, provider client, executor) are created in the lifespan and
kept on app.state; repositories and services are cheap wrappers built
per request around them.
"""

import ipaddress
from typing import Any

from fastapi import Depends, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository import (
    DEPLOY_KEYS_TABLE,
    EMAIL_SENDERS_TABLE,
    PostgresCredentialPool,
    PostgresDeploymentRepository,
    PostgresUserRepository,
)
from src.config.settings import get_settings
from src.domain.credential_admin import CredentialAdminService
from src.domain.deployment import DeploymentService
from src.domain.exceptions import Forbidden, NotAuthenticated
from src.domain.login import LoginService
from src.domain.models import UNKNOWN_IP
from src.domain.registration import RegistrationService

SESSION_KEY = "user"

# Checked in order; the first public address wins
CLIENT_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip", "x-client-ip")


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_user_repository(request: Request) -> PostgresUserRepository:
    """Create user repository with the signup policy from settings."""
    settings = get_settings()
    return PostgresUserRepository(
        get_pool(request),
        max_accounts_per_ip=settings.max_accounts_per_ip,
        tracking_window_days=settings.ip_tracking_window_days,
        referral_bonus=settings.referral_bonus_coins,
    )


def get_deployment_repository(request: Request) -> PostgresDeploymentRepository:
    return PostgresDeploymentRepository(get_pool(request))


def get_email_sender_pool(request: Request) -> PostgresCredentialPool:
    """Email sender pool; re-validation before deactivation is an SMTP login."""
    return PostgresCredentialPool(
        get_pool(request),
        EMAIL_SENDERS_TABLE,
        validator=request.app.state.transport.verify,
        recheck_seconds=get_settings().credential_recheck_seconds,
    )


def get_deploy_key_pool(request: Request) -> PostgresCredentialPool:
    """Deployment key pool; re-validation before deactivation is a provider /account call."""
    return PostgresCredentialPool(
        get_pool(request),
        DEPLOY_KEYS_TABLE,
        validator=request.app.state.provider.get_account,
        recheck_seconds=get_settings().credential_recheck_seconds,
    )


def get_registration_service(
    request: Request,
    users: PostgresUserRepository = Depends(get_user_repository),
    sender_pool: PostgresCredentialPool = Depends(get_email_sender_pool),
) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires together the user repository, the signup code store and the
    email sender pool for the domain service.
    """
    settings = get_settings()
    return RegistrationService(
        users=users,
        codes=request.app.state.signup_codes,
        executor=request.app.state.executor,
        sender_pool=sender_pool,
        transport=request.app.state.transport,
        allowed_domains=settings.allowed_email_domains,
        bcrypt_cost=settings.bcrypt_cost,
        ttl_minutes=settings.verification_ttl_seconds // 60,
    )


def get_login_service(
    request: Request,
    users: PostgresUserRepository = Depends(get_user_repository),
    sender_pool: PostgresCredentialPool = Depends(get_email_sender_pool),
) -> LoginService:
    return LoginService(
        users=users,
        codes=request.app.state.device_codes,
        executor=request.app.state.executor,
        sender_pool=sender_pool,
        transport=request.app.state.transport,
        ttl_minutes=get_settings().verification_ttl_seconds // 60,
    )


def get_deployment_service(
    request: Request,
    deployments: PostgresDeploymentRepository = Depends(get_deployment_repository),
    key_pool: PostgresCredentialPool = Depends(get_deploy_key_pool),
) -> DeploymentService:
    return DeploymentService(
        provider=request.app.state.provider,
        deployments=deployments,
        key_pool=key_pool,
        executor=request.app.state.executor,
    )


def get_credential_admin_service(
    request: Request,
    deploy_keys: PostgresCredentialPool = Depends(get_deploy_key_pool),
    email_senders: PostgresCredentialPool = Depends(get_email_sender_pool),
) -> CredentialAdminService:
    return CredentialAdminService(
        deploy_keys=deploy_keys,
        email_senders=email_senders,
        provider=request.app.state.provider,
        transport=request.app.state.transport,
    )


def _public_ip(value: str) -> str | None:
    try:
        address = ipaddress.ip_address(value.strip().removeprefix("::ffff:"))
    except ValueError:
        return None
    if address.version != 4 or address.is_private or address.is_loopback:
        return None
    return str(address)


def get_client_ip(request: Request) -> str:
    """
    Best-effort public IPv4 address of the caller.

    Proxy headers are checked first (first entry of a comma-separated
    list); private, loopback and malformed values are ignored. Falls back
    to the socket peer, then to 0.0.0.0.
    """
    for header in CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            ip = _public_ip(value.split(",")[0])
            if ip is not None:
                return ip

    if request.client is not None:
        ip = _public_ip(request.client.host)
        if ip is not None:
            return ip
    return UNKNOWN_IP


def get_session_user(
    request: Request,
    users: PostgresUserRepository = Depends(get_user_repository),
) -> dict[str, Any]:
    """
    Return the logged-in user from the session cookie.

    The ban flag is re-read from the database on every request so a ban
    takes effect without waiting for the session to expire.

    Raises:
        NotAuthenticated: no session or the user no longer exists
        Forbidden: the user is banned
    """
    user = request.session.get(SESSION_KEY)
    if not user:
        raise NotAuthenticated()

    banned = users.is_banned(user["id"])
    if banned is None:
        request.session.clear()
        raise NotAuthenticated()
    if banned:
        user["is_banned"] = True
        request.session[SESSION_KEY] = user
        raise Forbidden("Account is banned")
    return user


def require_admin(user: dict[str, Any] = Depends(get_session_user)) -> dict[str, Any]:
    """Raises Forbidden unless the session user is an administrator."""
    if not user.get("is_admin"):
        raise Forbidden("Admin access required")
    return user
