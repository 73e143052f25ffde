"""
In-memory verification store - Implements VerificationStore protocol.

Pending challenges live in a process-local dict and are lost on restart.
All reads and mutations happen under one lock, so concurrent checks for
the same key are serialized: an attempt budget is never double-counted
and a code validates at most once.

After the attempt limit is reached the challenge is removed and the key
is remembered as locked out, so later checks keep answering
ATTEMPTS_EXCEEDED until a new code is issued or the lockout ages past
the TTL.
"""

import asyncio
import logging
import secrets
import string
import threading
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from src.domain.models import PendingVerification
from src.domain.ports import CheckResult, VerificationStore, VerifyOutcome

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code(length: int = CODE_LENGTH) -> str:
    """Cryptographically random uppercase alphanumeric code."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class InMemoryVerificationStore:
    """
    Implements VerificationStore protocol with a locked dict.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        ttl_seconds: int = 30 * 60,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Args:
            ttl_seconds: age after which a challenge is expired
            max_attempts: wrong codes allowed before the challenge is dropped
            clock: returns the current aware datetime (injectable for tests)
        """
        self._ttl = timedelta(seconds=ttl_seconds)
        self._max_attempts = max_attempts
        self._clock = clock
        self._entries: dict[str, PendingVerification] = {}
        self._lockouts: dict[str, datetime] = {}
        self._lock = threading.Lock()

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def issue(self, key: str, payload: Mapping[str, Any]) -> str:
        code = generate_code()
        with self._lock:
            self._entries[key] = PendingVerification(
                code=code, payload=dict(payload), created_at=self._clock()
            )
            self._lockouts.pop(key, None)
        return code

    def check(self, key: str, code: str) -> CheckResult:
        supplied = code.strip().upper().encode()

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None:
                locked_at = self._lockouts.get(key)
                if locked_at is not None:
                    if now - locked_at <= self._ttl:
                        return CheckResult(VerifyOutcome.ATTEMPTS_EXCEEDED)
                    del self._lockouts[key]
                return CheckResult(VerifyOutcome.NOT_FOUND)

            # Expiry wins over code correctness
            if now - entry.created_at > self._ttl:
                del self._entries[key]
                return CheckResult(VerifyOutcome.EXPIRED)

            if not secrets.compare_digest(entry.code.encode(), supplied):
                entry.attempts += 1
                if entry.attempts >= self._max_attempts:
                    del self._entries[key]
                    self._lockouts[key] = now
                    return CheckResult(VerifyOutcome.ATTEMPTS_EXCEEDED)
                return CheckResult(
                    VerifyOutcome.MISMATCH,
                    attempts_left=self._max_attempts - entry.attempts,
                )

            del self._entries[key]
            return CheckResult(VerifyOutcome.VALID, payload=entry.payload)

    def discard(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [k for k, e in self._entries.items() if now - e.created_at > self._ttl]
            for key in stale:
                del self._entries[key]
            for key in [k for k, t in self._lockouts.items() if now - t > self._ttl]:
                del self._lockouts[key]
            return len(stale)


class VerificationSweeper:
    """Scheduled maintenance task that bounds the memory held by the stores."""

    def __init__(self, stores: Sequence[VerificationStore], interval_seconds: int) -> None:
        self._stores = list(stores)
        self._interval = interval_seconds

    def run_once(self) -> int:
        removed = sum(store.sweep() for store in self._stores)
        logger.info("Swept %d expired verification code(s)", removed)
        return removed

    async def run(self) -> None:
        """Sweep every interval until cancelled."""
        while True:
            await asyncio.sleep(self._interval)
            self.run_once()
