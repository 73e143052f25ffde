"""
Adversarial tests for concurrent verification attempts.

Verifies that an attacker hammering one pending challenge from many
threads cannot:
- Use a code more than once
- Get more guesses than the attempt budget allows
- Create more unbanned accounts from one IP than the limit allows
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresUserRepository
from src.adapters.verification.memory import InMemoryVerificationStore
from src.domain.ports import VerifyOutcome

# Apply adversarial marker to all tests in this module
pytestmark = pytest.mark.adversarial

NUM_ATTACKERS = 20


def wrong_code(code: str) -> str:
    return "AAAAAA" if code != "AAAAAA" else "BBBBBB"


class TestConcurrentChecks:
    """Concurrent checks against one key are serialized by the store lock."""

    def test_code_validates_exactly_once(self) -> None:
        """Many threads submitting the right code: exactly one VALID."""
        store = InMemoryVerificationStore(max_attempts=5)
        code = store.issue("victim@gmail.com", {"username": "victim"})
        barrier = threading.Barrier(NUM_ATTACKERS)

        def attack() -> VerifyOutcome:
            barrier.wait()
            return store.check("victim@gmail.com", code).outcome

        with ThreadPoolExecutor(max_workers=NUM_ATTACKERS) as executor:
            outcomes = list(executor.map(lambda _: attack(), range(NUM_ATTACKERS)))

        assert outcomes.count(VerifyOutcome.VALID) == 1
        assert outcomes.count(VerifyOutcome.NOT_FOUND) == NUM_ATTACKERS - 1

    def test_attempt_budget_never_exceeded(self) -> None:
        """Concurrent wrong guesses get exactly max_attempts - 1 MISMATCH answers."""
        store = InMemoryVerificationStore(max_attempts=5)
        code = store.issue("victim@gmail.com", {})
        bad = wrong_code(code)
        barrier = threading.Barrier(NUM_ATTACKERS)

        def attack() -> VerifyOutcome:
            barrier.wait()
            return store.check("victim@gmail.com", bad).outcome

        with ThreadPoolExecutor(max_workers=NUM_ATTACKERS) as executor:
            outcomes = list(executor.map(lambda _: attack(), range(NUM_ATTACKERS)))

        assert outcomes.count(VerifyOutcome.MISMATCH) == 4
        assert outcomes.count(VerifyOutcome.ATTEMPTS_EXCEEDED) == NUM_ATTACKERS - 4
        # The real code is useless once the budget is spent
        assert store.check("victim@gmail.com", code).outcome is VerifyOutcome.ATTEMPTS_EXCEEDED

    def test_brute_force_limited_to_budget(self) -> None:
        """Sequential guessing is cut off after the budget, whatever the guesses."""
        store = InMemoryVerificationStore(max_attempts=3)
        code = store.issue("victim@gmail.com", {})
        guesses = [f"{i:06d}" for i in range(100) if f"{i:06d}" != code]

        outcomes = [store.check("victim@gmail.com", guess).outcome for guess in guesses]

        assert outcomes[:2] == [VerifyOutcome.MISMATCH] * 2
        assert set(outcomes[2:]) == {VerifyOutcome.ATTEMPTS_EXCEEDED}


@pytest.mark.usefixtures("clean_users")
class TestConcurrentSignupsFromOneIp:
    """Concurrent registration transactions from a new IP are serialized."""

    def test_only_one_unbanned_account(self, pool: ConnectionPool) -> None:
        repository = PostgresUserRepository(pool, max_accounts_per_ip=1)
        barrier = threading.Barrier(5)

        def register(i: int) -> bool:
            barrier.wait()
            user = repository.create_user(
                {
                    "email": f"bot{i}@gmail.com",
                    "password_hash": "$2b$10$abcdefghijklmnopqrstuv",
                    "username": f"bot_{i}",
                    "country": None,
                    "referred_by": None,
                },
                "203.0.113.77",
            )
            return user.is_banned

        with ThreadPoolExecutor(max_workers=5) as executor:
            banned = list(executor.map(register, range(5)))

        assert banned.count(False) == 1
        assert banned.count(True) == 4
