"""
Shared fixtures for adversarial tests.

Only the database-backed race tests need PostgreSQL; the in-memory
attacks run everywhere.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool


@pytest.fixture
def clean_users(pool: ConnectionPool) -> Generator[None, None, None]:
    """Remove users and IP tracking before each database test."""
    with pool.connection() as conn:
        conn.execute(
            "TRUNCATE user_devices, wallets, user_country, ip_account_tracking, users "
            "RESTART IDENTITY CASCADE"
        )
    yield
