"""
Heroku Platform API client - Implements DeploymentProvider protocol.

Every call is authenticated with the credential passed in, so the same
client serves the whole deployment key pool. Responses are classified
for the ActionExecutor:

- 401, 429, 5xx, timeouts, network errors -> CredentialFailure
  (the key is taken out of rotation, next key is tried)
- 403, 404 -> CredentialSkipped (this key cannot see the app)
- any other 4xx -> DeploymentError (the request itself is wrong;
  retrying with another key would not help)
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from src.domain.exceptions import CredentialFailure, CredentialSkipped, DeploymentError
from src.domain.models import Credential

logger = logging.getLogger(__name__)

HEROKU_ACCEPT = "application/vnd.heroku+json; version=3"


class HerokuClient:
    """
    Implements DeploymentProvider protocol via httpx.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        base_url: str = "https://api.heroku.com",
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Platform API root
            timeout_seconds: per-request timeout
            transport: optional httpx transport (tests use httpx.MockTransport)
        """
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={"Accept": HEROKU_ACCEPT, "Content-Type": "application/json"},
        )

    def close(self) -> None:
        self._client.close()

    def create_app(self, credential: Credential, app_name: str) -> dict[str, Any]:
        return self._request(credential, "POST", "/apps", json={"name": app_name}).json()

    def delete_app(self, credential: Credential, app_name: str) -> None:
        self._request(credential, "DELETE", f"/apps/{app_name}")
        logger.info("Provider app %s deleted with key %s", app_name, credential.id)

    def get_config_vars(self, credential: Credential, app_name: str) -> dict[str, Any]:
        return self._request(credential, "GET", f"/apps/{app_name}/config-vars").json()

    def patch_config_vars(
        self, credential: Credential, app_name: str, config_vars: Mapping[str, Any]
    ) -> dict[str, Any]:
        response = self._request(
            credential, "PATCH", f"/apps/{app_name}/config-vars", json=dict(config_vars)
        )
        return response.json()

    def list_apps(self, credential: Credential) -> list[dict[str, Any]]:
        return self._request(credential, "GET", "/apps").json()

    def get_account(self, credential: Credential) -> bool:
        """
        Check a key against /account.

        A timeout counts as valid so a slow provider never disables
        healthy keys; only an explicit 401 or 403 marks the key invalid.

        Raises:
            CredentialFailure: the provider could not be reached
        """
        try:
            response = self._client.get("/account", headers=self._auth(credential))
        except httpx.TimeoutException:
            logger.warning("Account check for key %s timed out, assuming valid", credential.id)
            return True
        except httpx.HTTPError as e:
            raise CredentialFailure(f"Provider unreachable: {e}") from e

        if response.status_code in (401, 403):
            return False
        return response.is_success

    def _request(
        self, credential: Credential, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = self._client.request(method, url, headers=self._auth(credential), **kwargs)
        except httpx.TimeoutException as e:
            raise CredentialFailure(f"Provider request timed out: {method} {url}") from e
        except httpx.HTTPError as e:
            raise CredentialFailure(f"Provider request failed: {e}") from e

        status = response.status_code
        if response.is_success:
            return response

        detail = _error_message(response)
        logger.info("Provider %s %s returned %d: %s", method, url, status, detail)
        if status == 401 or status == 429 or status >= 500:
            raise CredentialFailure(f"{status}: {detail}")
        if status in (403, 404):
            raise CredentialSkipped(f"{status}: {detail}")
        raise DeploymentError(detail)

    @staticmethod
    def _auth(credential: Credential) -> dict[str, str]:
        return {"Authorization": f"Bearer {credential.secret}"}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return body.get("message") or body.get("id") or response.reason_phrase
    return response.reason_phrase
