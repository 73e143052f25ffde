"""
PostgreSQL user repository - Implements UserRepository protocol.

This module provides the PostgreSQL implementation of the domain's
user persistence port using psycopg3 with raw SQL.

Registration Transaction:
------------------------
create_user() is the only place a signup is durably committed. Inside
one transaction it:

1. Locks the ip_account_tracking row for the source IP (inserting an
   empty one first, so a brand-new IP is locked as well). If that IP
   already created max_accounts_per_ip accounts within the tracking
   window, the new account is created banned (soft ban, not rejected).
2. Inserts the user row (bcrypt hash from the challenge payload,
   fresh referral code, status from step 1).
3. Upserts the IP tracking row (insert at 1, increment, or restart at 1
   when the previous signup fell outside the window).
4. Credits the referrer, if any.
5. Inserts the user_country and zero-balance wallets rows.

Any psycopg error rolls everything back and surfaces TransactionFailure;
a partially created user is never visible.
"""

import logging
import secrets
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool

from src.domain.exceptions import TransactionFailure
from src.domain.models import AccountRecord, UserRecord

logger = logging.getLogger(__name__)

REFERRAL_CODE_LENGTH = 12
REFERRAL_CODE_ATTEMPTS = 3
REFERRAL_CODE_CONSTRAINT = "users_referral_code_key"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    """Uppercase hex referral code."""
    return secrets.token_hex(length // 2).upper()


class PostgresUserRepository:
    """
    Implements UserRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        max_accounts_per_ip: int = 1,
        tracking_window_days: int = 30,
        referral_bonus: int = 10,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize repository with connection pool and signup policy.

        Args:
            pool: psycopg3 ConnectionPool for database connections
            max_accounts_per_ip: accounts per IP within the window before new ones are banned
            tracking_window_days: rolling window for the per-IP count
            referral_bonus: coins credited to the referrer
            clock: returns the current aware datetime
        """
        self._pool = pool
        self._max_accounts_per_ip = max_accounts_per_ip
        self._window = timedelta(days=tracking_window_days)
        self._referral_bonus = referral_bonus
        self._clock = clock

    def email_exists(self, email: str) -> bool:
        with self._pool.connection() as conn:
            cursor = conn.execute("SELECT 1 FROM users WHERE email = %s", (email,))
            return cursor.fetchone() is not None

    def username_exists(self, username: str) -> bool:
        with self._pool.connection() as conn:
            cursor = conn.execute(
                "SELECT 1 FROM users WHERE LOWER(username) = LOWER(%s)", (username,)
            )
            return cursor.fetchone() is not None

    def find_referrer_id(self, referral_code: str) -> int | None:
        with self._pool.connection() as conn:
            row = conn.execute(
                "SELECT id FROM users WHERE referral_code = %s", (referral_code,)
            ).fetchone()
        return row[0] if row is not None else None

    def create_user(self, payload: Mapping[str, Any], client_ip: str) -> UserRecord:
        """
        Run the registration transaction (see module docstring).

        Args:
            payload: verified challenge payload with email, password_hash,
                username, country, referred_by
            client_ip: source IP of the signup request

        Returns:
            The created user, banned when the IP is over its limit

        Raises:
            TransactionFailure: any step failed; the transaction was rolled back
        """
        now = self._clock()

        try:
            with self._pool.connection() as conn, conn.transaction(), conn.cursor() as cursor:
                banned = self._ip_over_limit(cursor, client_ip, now)
                user_id, referral_code = self._insert_user(conn, cursor, payload, banned, now)
                self._track_ip(cursor, client_ip, now)
                if payload.get("referred_by"):
                    self._credit_referrer(cursor, payload["referred_by"])
                self._insert_country(cursor, user_id, payload.get("country"))
                self._insert_wallet(cursor, user_id)
        except psycopg.Error as e:
            logger.exception("Registration transaction rolled back for %s", payload.get("email"))
            raise TransactionFailure() from e

        logger.info("User %s registered (%s)", user_id, "banned" if banned else "active")
        return UserRecord(
            id=user_id,
            email=payload["email"],
            username=payload["username"],
            referral_code=referral_code,
            country=payload.get("country"),
            is_banned=banned,
        )

    def _ip_over_limit(self, cursor: psycopg.Cursor, client_ip: str, now: datetime) -> bool:
        # Placeholder row so concurrent signups from a new IP serialize on the lock below
        cursor.execute(
            """
            INSERT INTO ip_account_tracking (ip_address, account_count, last_signup)
            VALUES (%s, 0, %s)
            ON CONFLICT (ip_address) DO NOTHING
            """,
            (client_ip, now),
        )
        cursor.execute(
            """
            SELECT account_count, last_signup
            FROM ip_account_tracking
            WHERE ip_address = %s
            FOR UPDATE
            """,
            (client_ip,),
        )
        row = cursor.fetchone()
        if row is None:
            return False
        account_count, last_signup = row
        return last_signup >= now - self._window and account_count >= self._max_accounts_per_ip

    def _insert_user(
        self,
        conn: psycopg.Connection,
        cursor: psycopg.Cursor,
        payload: Mapping[str, Any],
        banned: bool,
        now: datetime,
    ) -> tuple[int, str]:
        """Insert the user row; a referral code collision retries with a fresh code."""
        attempts = 0
        while True:
            attempts += 1
            referral_code = generate_referral_code()
            try:
                # Savepoint, so a collision does not abort the outer transaction
                with conn.transaction():
                    cursor.execute(
                        """
                        INSERT INTO users (
                            email, password_hash, username, referral_code, referred_by,
                            coins, status, is_banned, is_verified, created_at, last_login
                        )
                        VALUES (%s, %s, %s, %s, %s, 0, %s, %s, TRUE, %s, %s)
                        RETURNING id
                        """,
                        (
                            payload["email"],
                            payload["password_hash"],
                            payload["username"],
                            referral_code,
                            payload.get("referred_by"),
                            "banned" if banned else "active",
                            banned,
                            now,
                            now,
                        ),
                    )
            except psycopg.errors.UniqueViolation as e:
                if (
                    e.diag.constraint_name != REFERRAL_CODE_CONSTRAINT
                    or attempts >= REFERRAL_CODE_ATTEMPTS
                ):
                    raise
                logger.info("Referral code collision, retrying with a new code")
                continue
            return cursor.fetchone()[0], referral_code

    def _track_ip(self, cursor: psycopg.Cursor, client_ip: str, now: datetime) -> None:
        cursor.execute(
            """
            INSERT INTO ip_account_tracking (ip_address, account_count, last_signup)
            VALUES (%s, 1, %s)
            ON CONFLICT (ip_address) DO UPDATE
            SET account_count = CASE
                    WHEN ip_account_tracking.last_signup >= %s
                    THEN ip_account_tracking.account_count + 1
                    ELSE 1
                END,
                last_signup = EXCLUDED.last_signup
            """,
            (client_ip, now, now - self._window),
        )

    def _credit_referrer(self, cursor: psycopg.Cursor, referrer_id: int) -> None:
        cursor.execute(
            "UPDATE users SET coins = coins + %s WHERE id = %s",
            (self._referral_bonus, referrer_id),
        )

    def _insert_country(self, cursor: psycopg.Cursor, user_id: int, country: str | None) -> None:
        cursor.execute(
            "INSERT INTO user_country (user_id, country) VALUES (%s, %s)", (user_id, country)
        )

    def _insert_wallet(self, cursor: psycopg.Cursor, user_id: int) -> None:
        cursor.execute("INSERT INTO wallets (user_id, balance) VALUES (%s, 0)", (user_id,))

    def get_account(self, email: str) -> AccountRecord | None:
        with self._pool.connection() as conn:
            row = conn.execute(
                "SELECT id, email, password_hash, is_admin, is_banned FROM users WHERE email = %s",
                (email,),
            ).fetchone()
        if row is None:
            return None
        return AccountRecord(
            id=row[0], email=row[1], password_hash=row[2], is_admin=row[3], is_banned=row[4]
        )

    def is_banned(self, user_id: int) -> bool | None:
        """Current ban flag, or None when the user no longer exists."""
        with self._pool.connection() as conn:
            row = conn.execute("SELECT is_banned FROM users WHERE id = %s", (user_id,)).fetchone()
        return row[0] if row is not None else None

    def find_verified_device(self, user_id: int, device_info: str) -> str | None:
        with self._pool.connection() as conn:
            row = conn.execute(
                """
                SELECT id FROM user_devices
                WHERE user_id = %s AND device_info = %s AND is_verified
                ORDER BY last_used DESC
                LIMIT 1
                """,
                (user_id, device_info),
            ).fetchone()
        return str(row[0]) if row is not None else None

    def touch_device(self, device_id: str, ip_address: str) -> None:
        with self._pool.connection() as conn:
            conn.execute(
                "UPDATE user_devices SET last_used = %s, ip_address = %s WHERE id = %s",
                (self._clock(), ip_address, device_id),
            )

    def add_pending_device(
        self, device_id: str, user_id: int, ip_address: str, device_info: str, location: str
    ) -> None:
        with self._pool.connection() as conn:
            conn.execute(
                """
                INSERT INTO user_devices
                    (id, user_id, ip_address, device_info, location, last_used, is_verified)
                VALUES (%s, %s, %s, %s, %s, %s, FALSE)
                """,
                (device_id, user_id, ip_address, device_info, location, self._clock()),
            )

    def confirm_device(self, device_id: str, user_id: int) -> None:
        now = self._clock()
        with self._pool.connection() as conn, conn.transaction():
            conn.execute(
                """
                UPDATE user_devices SET is_verified = TRUE, last_used = %s
                WHERE id = %s AND user_id = %s
                """,
                (now, device_id, user_id),
            )
            conn.execute("UPDATE users SET last_login = %s WHERE id = %s", (now, user_id))


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            with pool.connection() as conn:
                conn.execute(sql_file.read_text())
            logger.info("Migration complete: %s", sql_file.name)
        except psycopg.Error as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
