"""
PostgreSQL deployment repository - Implements DeploymentRepository protocol.
"""

import logging

from psycopg.rows import class_row
from psycopg_pool import ConnectionPool

from src.domain.models import Deployment

logger = logging.getLogger(__name__)

_COLUMNS = "id, user_id, bot_id, app_name, status, credential_id"


class PostgresDeploymentRepository:
    """Implements DeploymentRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def app_name_taken(self, app_name: str) -> bool:
        with self._pool.connection() as conn:
            cursor = conn.execute("SELECT 1 FROM deployed_apps WHERE app_name = %s", (app_name,))
            return cursor.fetchone() is not None

    def get_by_name(self, app_name: str) -> Deployment | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=class_row(Deployment)) as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM deployed_apps WHERE app_name = %s", (app_name,))
            return cur.fetchone()

    def save(self, user_id: int, bot_id: int, app_name: str, credential_id: int) -> Deployment:
        with self._pool.connection() as conn, conn.cursor(row_factory=class_row(Deployment)) as cur:
            cur.execute(
                f"""
                INSERT INTO deployed_apps (user_id, bot_id, app_name, status, credential_id)
                VALUES (%s, %s, %s, 'active', %s)
                RETURNING {_COLUMNS}
                """,
                (user_id, bot_id, app_name, credential_id),
            )
            return cur.fetchone()

    def delete_by_name(self, app_name: str) -> bool:
        with self._pool.connection() as conn:
            cursor = conn.execute("DELETE FROM deployed_apps WHERE app_name = %s", (app_name,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deployment record %s removed", app_name)
        return deleted

    def list_for_user(self, user_id: int) -> list[Deployment]:
        with self._pool.connection() as conn, conn.cursor(row_factory=class_row(Deployment)) as cur:
            cur.execute(
                f"SELECT {_COLUMNS} FROM deployed_apps WHERE user_id = %s ORDER BY created_at DESC",
                (user_id,),
            )
            return cur.fetchall()
