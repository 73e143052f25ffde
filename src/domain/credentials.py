"""
Credential rotation - selection and retry across a credential pool.

Every outbound side effect (verification email, deployment provider call)
goes through ActionExecutor.execute() with a closure that performs the
action for one credential. The executor walks the pool least-used first,
one credential at a time, and stops at the first success.

Failure handling per credential:
- CredentialFailure: logged, pool.mark_failed(), next credential
- CredentialSkipped: logged, next credential, pool untouched
- anything else: propagates to the caller

Only exhaustion of the pool reaches the caller, as a failed
ExecutionResult (or CredentialExhausted from unwrap()).
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .exceptions import ActionFailure, CredentialExhausted, CredentialFailure
from .models import Credential
from .ports import CredentialPool

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ExecutionResult(Generic[T]):
    """Outcome of one executor run."""

    success: bool
    value: T | None = None
    credential: Credential | None = None
    last_error: Exception | None = None
    attempts: int = 0

    def unwrap(self) -> T:
        """
        Return the action's value.

        Raises:
            CredentialExhausted: no credential succeeded
        """
        if not self.success:
            raise CredentialExhausted()
        return self.value  # type: ignore[return-value]


@dataclass
class CredentialSelector:
    """Picks the next usable credential from a pool."""

    pool: CredentialPool

    def acquire(self) -> Credential | None:
        """Return the least-used usable credential, or None when the pool is exhausted."""
        usable = self.pool.list_usable()
        if not usable:
            logger.warning("Credential pool exhausted")
            return None
        return usable[0]


class ActionExecutor:
    """Retries an action across the credentials of a pool until one succeeds."""

    def execute(
        self, action: Callable[[Credential], T], pool: CredentialPool
    ) -> ExecutionResult[T]:
        last_error: Exception | None = None
        attempts = 0

        for credential in pool.list_usable():
            attempts += 1
            try:
                value = action(credential)
            except CredentialFailure as e:
                last_error = e
                logger.warning(
                    "Action failed with credential %s (%s): %s",
                    credential.id,
                    credential.masked,
                    e,
                )
                pool.mark_failed(credential.id, str(e))
                continue
            except ActionFailure as e:
                last_error = e
                logger.info("Credential %s skipped: %s", credential.id, e)
                continue

            pool.record_success(credential.id)
            return ExecutionResult(
                success=True, value=value, credential=credential, attempts=attempts
            )

        if attempts == 0:
            logger.error("No usable credentials available")
        else:
            logger.error("All %d credential(s) failed, last error: %s", attempts, last_error)
        return ExecutionResult(success=False, last_error=last_error, attempts=attempts)
