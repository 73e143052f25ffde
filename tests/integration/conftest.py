"""
Shared fixtures for integration tests.

Requires PostgreSQL to be running (DATABASE_URL); every test in this
directory is skipped when the database cannot be reached.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool

TABLES = (
    "deployed_apps",
    "user_devices",
    "wallets",
    "user_country",
    "ip_account_tracking",
    "users",
    "heroku_api_keys",
    "email_senders",
)


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Empty every table before each test."""
    with pool.connection() as conn:
        conn.execute(f"TRUNCATE {', '.join(TABLES)} RESTART IDENTITY CASCADE")
    yield
