"""
Deployment domain service - bot apps on the PaaS provider.

Apps are created under whichever deployment key the executor picks, and
the owning key is not always known later (keys are rotated, replaced, or
re-enabled by administrators). Calls against an existing app therefore
go through the executor too: keys that cannot see the app are skipped
until one can.
"""

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .credentials import ActionExecutor, CredentialSelector
from .exceptions import (
    ActionFailure,
    CredentialExhausted,
    CredentialSkipped,
    DeploymentError,
    NotFound,
    TalkDroveError,
    ValidationError,
)
from .models import AppNameCheck, Credential, DeleteResult, Deployment
from .ports import CredentialPool, DeploymentProvider, DeploymentRepository

logger = logging.getLogger(__name__)

APP_NAME_PATTERN = re.compile(r"^[a-z0-9-]{3,30}$")

RESERVED_APP_NAMES = frozenset(
    {
        "heroku-td",
        "admin-td",
        "api-td",
        "dashboard-td",
        "app-td",
        "staging-td",
        "production-td",
        "test-td",
        "testing-td",
        "www-td",
        "web-td",
        "mail-td",
        "email-td",
        "beta-td",
        "demo-td",
    }
)

# Set by the platform on every app; hidden from users and never overwritten by them
SENSITIVE_VARS = frozenset({"HEROKU_API_KEY", "HEROKU_APP_NAME"})


def visible_vars(config_vars: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in config_vars.items() if k not in SENSITIVE_VARS}


@dataclass
class DeploymentService:
    provider: DeploymentProvider
    deployments: DeploymentRepository
    key_pool: CredentialPool
    executor: ActionExecutor

    def check_app_name(self, app_name: str) -> AppNameCheck:
        """Report whether a name is free locally, unreserved, and unused on the provider."""
        if not APP_NAME_PATTERN.match(app_name):
            return AppNameCheck(False, False, False, error="Invalid name format")

        exists = self.deployments.app_name_taken(app_name)
        reserved = app_name in RESERVED_APP_NAMES

        provider_exists = False
        credential = CredentialSelector(self.key_pool).acquire()
        if credential is not None:
            try:
                apps = self.provider.list_apps(credential)
                provider_exists = any(app.get("name") == app_name for app in apps)
            except ActionFailure as e:
                # Unknown is reported as available; creation fails later if it is not
                logger.warning("Provider app listing failed: %s", e)

        return AppNameCheck(exists, reserved, provider_exists)

    def deploy(
        self, user_id: int, bot_id: int, app_name: str, config_vars: Mapping[str, Any]
    ) -> Deployment:
        """
        Create the app on the provider, apply its config vars, and record it.

        Raises:
            ValidationError: name invalid or unavailable
            CredentialExhausted: no deployment key could create the app
            DeploymentError: the provider rejected the app or its config
        """
        check = self.check_app_name(app_name)
        if check.error:
            raise ValidationError(check.error)
        if check.exists or check.reserved or check.provider_exists:
            raise ValidationError("App name is not available")

        result = self.executor.execute(
            lambda key: self.provider.create_app(key, app_name), self.key_pool
        )
        if not result.success:
            raise CredentialExhausted("No deployment capacity available. Please try again later.")

        credential = result.credential
        try:
            if config_vars:
                try:
                    self.provider.patch_config_vars(
                        credential, app_name, visible_vars(config_vars)
                    )
                except ActionFailure as e:
                    raise DeploymentError("App created but configuration failed") from e
            deployment = self.deployments.save(user_id, bot_id, app_name, credential.id)
        except Exception:
            logger.error("Deployment of %s failed after creation, removing the app", app_name)
            self._remove_created_app(credential, app_name)
            raise

        logger.info("Deployed %s for user %s with key %s", app_name, user_id, credential.id)
        return deployment

    def _remove_created_app(self, credential: Credential, app_name: str) -> None:
        """Best-effort delete so a failed deploy leaves no unowned app behind."""
        try:
            self.provider.delete_app(credential, app_name)
        except (ActionFailure, TalkDroveError) as e:
            logger.error("App %s could not be removed and is orphaned: %s", app_name, e)
            return
        logger.info("App %s removed after failed deployment", app_name)

    def delete(self, app_name: str, user_id: int) -> DeleteResult:
        """
        Delete the app on the provider and drop the local record.

        The local record is removed even when no key could delete the app,
        so users are never left with orphaned entries.
        """
        self._owned(app_name, user_id)

        result = self.executor.execute(
            lambda key: self.provider.delete_app(key, app_name), self.key_pool
        )
        self.deployments.delete_by_name(app_name)

        if result.success:
            message = f"App {app_name} fully deleted"
        else:
            logger.warning("Provider deletion of %s failed: %s", app_name, result.last_error)
            message = f"App {app_name} deleted from database, provider deletion failed"
        return DeleteResult(app_name=app_name, provider_deleted=result.success, message=message)

    def list_for_user(self, user_id: int) -> list[Deployment]:
        return self.deployments.list_for_user(user_id)

    def get_config_vars(self, app_name: str, user_id: int) -> dict[str, Any]:
        self._owned(app_name, user_id)
        return visible_vars(self._fetch_vars(app_name))

    def update_config_vars(
        self, app_name: str, user_id: int, updates: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Patch user-editable vars; sensitive vars keep their current values."""
        self._owned(app_name, user_id)
        response = self._run(
            app_name,
            lambda key: self.provider.patch_config_vars(key, app_name, visible_vars(updates)),
        )
        return visible_vars(response)

    def delete_config_var(self, app_name: str, user_id: int, var_name: str) -> dict[str, Any]:
        self._owned(app_name, user_id)
        current = self._fetch_vars(app_name)
        if var_name in SENSITIVE_VARS or var_name not in current:
            raise NotFound(f"Variable {var_name} does not exist")

        response = self._run(
            app_name, lambda key: self.provider.patch_config_vars(key, app_name, {var_name: None})
        )
        return visible_vars(response)

    def _fetch_vars(self, app_name: str) -> dict[str, Any]:
        return self._run(app_name, lambda key: self.provider.get_config_vars(key, app_name))

    def _run(
        self, app_name: str, action: Callable[[Credential], dict[str, Any]]
    ) -> dict[str, Any]:
        result = self.executor.execute(action, self.key_pool)
        if result.success:
            return result.value
        if isinstance(result.last_error, CredentialSkipped):
            raise NotFound(f"App {app_name} not found on the provider")
        raise CredentialExhausted()

    def _owned(self, app_name: str, user_id: int) -> Deployment:
        deployment = self.deployments.get_by_name(app_name)
        if deployment is None or deployment.user_id != user_id:
            raise NotFound(f"App {app_name} not found")
        return deployment
