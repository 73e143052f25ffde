"""Repository adapters - Database implementations."""

from .credentials import DEPLOY_KEYS_TABLE, EMAIL_SENDERS_TABLE, PostgresCredentialPool
from .deployments import PostgresDeploymentRepository
from .postgres import PostgresUserRepository, run_migrations

__all__ = [
    "DEPLOY_KEYS_TABLE",
    "EMAIL_SENDERS_TABLE",
    "PostgresCredentialPool",
    "PostgresDeploymentRepository",
    "PostgresUserRepository",
    "run_migrations",
]
