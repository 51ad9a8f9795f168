"""Durable storage for alerts and subscriptions.

Provides the AlertStore contract, an in-memory implementation for
development and tests, and a PostgreSQL implementation with pooled
connections.
"""

from .connection import (
    DatabaseConfig,
    ConnectionManager,
    connection_manager_from_env,
)
from .repository import (
    AlertStore,
    RepositoryError,
    NotFoundError,
    DuplicateError,
    MUTABLE_ALERT_FIELDS,
)
from .alert_store import (
    InMemoryAlertStore,
    PostgresAlertStore,
    SCHEMA_SQL,
    alert_store_from_env,
)

__all__ = [
    "DatabaseConfig",
    "ConnectionManager",
    "connection_manager_from_env",
    "AlertStore",
    "RepositoryError",
    "NotFoundError",
    "DuplicateError",
    "MUTABLE_ALERT_FIELDS",
    "InMemoryAlertStore",
    "PostgresAlertStore",
    "SCHEMA_SQL",
    "alert_store_from_env",
]
