"""
PostgreSQL credential pool - Implements CredentialPool and CredentialRegistry.

One class serves both credential tables:
- heroku_api_keys: bearer tokens for the deployment provider
- email_senders: SMTP accounts used to deliver verification codes

Usage is counted per calendar day (UTC). A row whose last_reset_date is
not today counts as unused, and the first success of a new day resets
its counter.

Deactivation uses a double-check: when a credential was confirmed valid
within the recheck window, mark_failed() asks the injected validator
again before flipping it inactive, so a single transient failure does
not take a healthy credential out of rotation.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.domain.exceptions import ActionFailure
from src.domain.models import Credential, SenderSettings

logger = logging.getLogger(__name__)

DEPLOY_KEYS_TABLE = "heroku_api_keys"
EMAIL_SENDERS_TABLE = "email_senders"

# table -> (identifier column, credential-specific select list)
_TABLES = {
    DEPLOY_KEYS_TABLE: (
        "api_key",
        "api_key AS secret, NULL AS username, NULL AS host, NULL AS port",
    ),
    EMAIL_SENDERS_TABLE: (
        "email",
        "password AS secret, email AS username, host, port",
    ),
}

_COMMON_COLUMNS = (
    "id, is_active, usage_count, daily_limit, last_reset_date, "
    "failed_attempts, last_checked, last_used, last_error"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PostgresCredentialPool:
    """
    Implements CredentialPool and CredentialRegistry protocols via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries; the table name comes from a fixed set.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        table: str,
        validator: Callable[[Credential], bool] | None = None,
        recheck_seconds: int = 5 * 60,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Args:
            pool: psycopg3 ConnectionPool for database connections
            table: DEPLOY_KEYS_TABLE or EMAIL_SENDERS_TABLE
            validator: re-checks a credential before deactivating it
            recheck_seconds: window in which a credential counts as recently validated
            clock: returns the current aware datetime
        """
        if table not in _TABLES:
            raise ValueError(f"Unknown credential table: {table}")
        self._pool = pool
        self._table = table
        self._validator = validator
        self._recheck = timedelta(seconds=recheck_seconds)
        self._clock = clock

        identifier, specific = _TABLES[table]
        self._identifier = sql.Identifier(identifier)
        self._select = sql.SQL("SELECT {common}, {specific} FROM {table}").format(
            common=sql.SQL(_COMMON_COLUMNS),
            specific=sql.SQL(specific),
            table=sql.Identifier(table),
        )

    @property
    def table(self) -> str:
        return self._table

    # Pool operations

    def list_usable(self) -> list[Credential]:
        query = sql.SQL(
            """
            {select}
            WHERE is_active
              AND (daily_limit IS NULL
                   OR last_reset_date IS DISTINCT FROM %(today)s
                   OR usage_count < daily_limit)
            ORDER BY CASE WHEN last_reset_date IS DISTINCT FROM %(today)s
                          THEN 0 ELSE usage_count END,
                     id
            """
        ).format(select=self._select)

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(query, {"today": self._clock().date()})
            return [self._to_credential(row) for row in cursor.fetchall()]

    def mark_failed(self, credential_id: int, reason: str) -> None:
        # Both updates apply only to the row state the decision was based on
        keep_query = sql.SQL(
            """
            UPDATE {table}
            SET last_checked = %s, last_error = %s
            WHERE id = %s AND is_active AND last_checked IS NOT DISTINCT FROM %s
            """
        ).format(table=sql.Identifier(self._table))
        deactivate_query = sql.SQL(
            """
            UPDATE {table}
            SET is_active = FALSE,
                failed_attempts = failed_attempts + 1,
                last_checked = %s,
                last_error = %s
            WHERE id = %s AND is_active AND last_checked IS NOT DISTINCT FROM %s
            """
        ).format(table=sql.Identifier(self._table))

        credential = self.get(credential_id)
        if credential is None or not credential.is_active:
            return

        # The validator makes a network call; no connection is held while it runs
        keep = self._recently_checked(credential, self._clock()) and self._still_valid(credential)
        query = keep_query if keep else deactivate_query

        now = self._clock()
        with self._pool.connection() as conn:
            cursor = conn.execute(query, (now, reason, credential_id, credential.last_checked))
            applied = cursor.rowcount == 1

        if not applied:
            logger.info(
                "Credential %s in %s changed concurrently, left as is", credential_id, self._table
            )
        elif keep:
            logger.info("Credential %s in %s still validates, kept active", credential_id, self._table)
        else:
            logger.warning(
                "Credential %s in %s deactivated: %s", credential_id, self._table, reason
            )

    def record_success(self, credential_id: int) -> None:
        query = sql.SQL(
            """
            UPDATE {table}
            SET usage_count = CASE WHEN last_reset_date IS DISTINCT FROM %(today)s
                                   THEN 1 ELSE usage_count + 1 END,
                last_reset_date = %(today)s,
                last_used = %(now)s
            WHERE id = %(id)s
            """
        ).format(table=sql.Identifier(self._table))

        now = self._clock()
        with self._pool.connection() as conn:
            conn.execute(query, {"today": now.date(), "now": now, "id": credential_id})

    # Registry operations

    def list_all(self) -> list[Credential]:
        query = sql.SQL("{select} ORDER BY created_at DESC, id DESC").format(select=self._select)
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(query)
            return [self._to_credential(row) for row in cursor.fetchall()]

    def get(self, credential_id: int) -> Credential | None:
        query = sql.SQL("{select} WHERE id = %s").format(select=self._select)
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(query, (credential_id,))
            row = cursor.fetchone()
        return self._to_credential(row) if row is not None else None

    def identifier_exists(self, identifier: str) -> bool:
        query = sql.SQL("SELECT 1 FROM {table} WHERE {column} = %s").format(
            table=sql.Identifier(self._table), column=self._identifier
        )
        with self._pool.connection() as conn:
            return conn.execute(query, (identifier,)).fetchone() is not None

    def add_api_key(self, api_key: str) -> int:
        if self._table != DEPLOY_KEYS_TABLE:
            raise ValueError("API keys belong to the deployment key pool")
        with self._pool.connection() as conn:
            row = conn.execute(
                "INSERT INTO heroku_api_keys (api_key, is_active, last_checked) "
                "VALUES (%s, TRUE, %s) RETURNING id",
                (api_key, self._clock()),
            ).fetchone()
        return row[0]

    def add_sender(self, sender: SenderSettings) -> int:
        if self._table != EMAIL_SENDERS_TABLE:
            raise ValueError("Senders belong to the email sender pool")
        with self._pool.connection() as conn:
            row = conn.execute(
                """
                INSERT INTO email_senders
                    (email, password, host, port, daily_limit, is_active, last_checked)
                VALUES (%s, %s, %s, %s, %s, TRUE, %s)
                RETURNING id
                """,
                (
                    sender.email,
                    sender.password,
                    sender.host,
                    sender.port,
                    sender.daily_limit,
                    self._clock(),
                ),
            ).fetchone()
        return row[0]

    def set_active(self, credential_id: int, is_active: bool) -> bool:
        query = sql.SQL(
            """
            UPDATE {table}
            SET is_active = %s,
                last_checked = %s,
                failed_attempts = CASE WHEN %s THEN 0 ELSE failed_attempts END
            WHERE id = %s
            """
        ).format(table=sql.Identifier(self._table))
        with self._pool.connection() as conn:
            cursor = conn.execute(query, (is_active, self._clock(), is_active, credential_id))
            return cursor.rowcount == 1

    def delete(self, credential_id: int) -> bool:
        query = sql.SQL("DELETE FROM {table} WHERE id = %s").format(
            table=sql.Identifier(self._table)
        )
        with self._pool.connection() as conn:
            return conn.execute(query, (credential_id,)).rowcount == 1

    def _recently_checked(self, credential: Credential, now: datetime) -> bool:
        return credential.last_checked is not None and now - credential.last_checked < self._recheck

    def _still_valid(self, credential: Credential) -> bool:
        if self._validator is None:
            return False
        try:
            return self._validator(credential)
        except ActionFailure as e:
            logger.warning("Re-check of credential %s failed: %s", credential.id, e)
            return False

    @staticmethod
    def _to_credential(row: dict[str, Any]) -> Credential:
        return Credential(
            id=row["id"],
            secret=row["secret"],
            is_active=row["is_active"],
            usage_count=row["usage_count"],
            daily_limit=row["daily_limit"],
            last_reset_date=row["last_reset_date"],
            failed_attempts=row["failed_attempts"],
            last_checked=row["last_checked"],
            last_used=row["last_used"],
            last_error=row["last_error"],
            username=row["username"],
            host=row["host"],
            port=row["port"],
        )
