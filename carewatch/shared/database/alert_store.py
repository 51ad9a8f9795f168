"""AlertStore implementations: in-memory and PostgreSQL.

InMemoryAlertStore backs local development and tests.
PostgresAlertStore writes through the shared ConnectionManager; the
analysis is kept as JSONB so it round-trips by value.
"""
import dataclasses
import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from carewatch.shared.models import (
    AlertState,
    NotificationSubscription,
    RealTimeAlert,
)
from carewatch.shared.utils import KeyedLocks
from .connection import ConnectionManager, connection_manager_from_env
from .repository import (
    AlertStore,
    DuplicateError,
    NotFoundError,
    RepositoryError,
    validate_alert_patch,
)

logger = logging.getLogger(__name__)


class InMemoryAlertStore(AlertStore):
    """Process-local store.

    Records are frozen, so a reader always sees a whole record. Writers
    serialize per alert id or per subscription key.
    """

    def __init__(self):
        self._alerts: Dict[str, RealTimeAlert] = {}
        self._subscriptions: Dict[tuple, NotificationSubscription] = {}
        self._alert_locks = KeyedLocks()
        self._subscription_locks = KeyedLocks()

        logger.info("ALERT_STORE_INITIALIZED", extra={"backend": "memory"})

    def save_alert(self, alert: RealTimeAlert) -> RealTimeAlert:
        with self._alert_locks.hold(alert.id):
            if alert.id in self._alerts:
                raise DuplicateError(f"Alert already exists: {alert.id}")
            self._alerts[alert.id] = alert

        logger.debug(
            "ALERT_STORED_MEMORY",
            extra={"alert_id": alert.id, "scope": alert.organization_scope}
        )
        return alert

    def get_alert(self, alert_id: str) -> Optional[RealTimeAlert]:
        return self._alerts.get(alert_id)

    def update_alert(self, alert_id: str, patch: Dict[str, Any]) -> RealTimeAlert:
        validate_alert_patch(patch)
        with self._alert_locks.hold(alert_id):
            current = self._alerts.get(alert_id)
            if current is None:
                raise NotFoundError(f"Alert not found: {alert_id}")
            updated = dataclasses.replace(current, **patch)
            self._alerts[alert_id] = updated
        return updated

    def list_alerts(
        self,
        scope: str,
        since: Optional[datetime] = None,
    ) -> List[RealTimeAlert]:
        alerts = [
            a for a in list(self._alerts.values())
            if a.organization_scope == scope
            and (since is None or a.timestamp >= since)
        ]
        alerts.sort(key=lambda a: a.timestamp, reverse=True)
        return alerts

    def save_subscription(
        self,
        subscription: NotificationSubscription,
    ) -> NotificationSubscription:
        with self._subscription_locks.hold(subscription.key):
            self._subscriptions[subscription.key] = subscription
        return subscription

    def list_subscriptions(
        self,
        scope: Optional[str] = None,
    ) -> List[NotificationSubscription]:
        return [
            s for s in list(self._subscriptions.values())
            if scope is None or s.organization_scope == scope
        ]


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS realtime_alerts (
    id                  VARCHAR(64) PRIMARY KEY,
    alert_type          VARCHAR(32) NOT NULL,
    priority            VARCHAR(16) NOT NULL,
    severity_level      SMALLINT NOT NULL,
    title               TEXT NOT NULL,
    message             TEXT NOT NULL,
    organization_scope  VARCHAR(128) NOT NULL,
    subject_id          VARCHAR(128),
    subject_name        VARCHAR(255),
    analysis            JSONB,
    created_at          TIMESTAMP NOT NULL,
    acknowledged        BOOLEAN NOT NULL DEFAULT FALSE,
    acknowledged_by     VARCHAR(128),
    acknowledged_at     TIMESTAMP,
    state               VARCHAR(16) NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_realtime_alerts_scope_created
    ON realtime_alerts (organization_scope, created_at DESC);

CREATE TABLE IF NOT EXISTS notification_subscriptions (
    id                  VARCHAR(64) PRIMARY KEY,
    subscriber_id       VARCHAR(128) NOT NULL,
    role                VARCHAR(16) NOT NULL,
    organization_scope  VARCHAR(128) NOT NULL,
    alert_types         TEXT[] NOT NULL,
    is_active           BOOLEAN NOT NULL DEFAULT TRUE,
    created_at          TIMESTAMP NOT NULL,
    updated_at          TIMESTAMP NOT NULL,
    UNIQUE (subscriber_id, organization_scope)
);
"""

_ALERT_COLUMNS = (
    "id, alert_type, priority, title, message, organization_scope, "
    "subject_id, subject_name, analysis, created_at, acknowledged, "
    "acknowledged_by, acknowledged_at, state"
)

_SUBSCRIPTION_COLUMNS = (
    "id, subscriber_id, role, organization_scope, alert_types, "
    "is_active, created_at, updated_at"
)


class PostgresAlertStore(AlertStore):
    """PostgreSQL-backed store.

    Per-key write serialization comes from row-level locking in the
    database; the pool is thread-safe for concurrent fan-out.
    """

    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager

        logger.info(
            "ALERT_STORE_INITIALIZED",
            extra={
                "backend": "postgresql",
                "database": connection_manager.config.database,
            }
        )

    def health_check(self) -> Dict[str, Any]:
        return self.connection_manager.health_check()

    def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        self._execute(SCHEMA_SQL, (), operation="create_schema")

    def save_alert(self, alert: RealTimeAlert) -> RealTimeAlert:
        query = f"""
            INSERT INTO realtime_alerts ({_ALERT_COLUMNS}, severity_level)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (id) DO NOTHING
        """
        params = (
            alert.id,
            alert.type.value,
            alert.priority.value,
            alert.title,
            alert.message,
            alert.organization_scope,
            alert.subject_id,
            alert.subject_name,
            json.dumps(alert.analysis.to_dict()) if alert.analysis else None,
            alert.timestamp,
            alert.acknowledged,
            alert.acknowledged_by,
            alert.acknowledged_at,
            alert.state.value,
            alert.priority.severity,
        )
        rowcount = self._execute(query, params, operation="save_alert", entity_id=alert.id)
        if rowcount == 0:
            raise DuplicateError(f"Alert already exists: {alert.id}")

        logger.info(
            "ALERT_STORED_POSTGRES",
            extra={"alert_id": alert.id, "scope": alert.organization_scope}
        )
        return alert

    def get_alert(self, alert_id: str) -> Optional[RealTimeAlert]:
        rows = self._fetch(
            f"SELECT {_ALERT_COLUMNS} FROM realtime_alerts WHERE id = %s",
            (alert_id,),
            operation="get_alert",
        )
        return self._row_to_alert(rows[0]) if rows else None

    def update_alert(self, alert_id: str, patch: Dict[str, Any]) -> RealTimeAlert:
        validate_alert_patch(patch)
        columns = sorted(patch)
        assignments = ", ".join(f"{col} = %s" for col in columns)
        values = [
            patch[col].value if isinstance(patch[col], AlertState) else patch[col]
            for col in columns
        ]
        rows = self._fetch(
            f"UPDATE realtime_alerts SET {assignments} WHERE id = %s "
            f"RETURNING {_ALERT_COLUMNS}",
            (*values, alert_id),
            operation="update_alert",
        )
        if not rows:
            raise NotFoundError(f"Alert not found: {alert_id}")
        return self._row_to_alert(rows[0])

    def list_alerts(
        self,
        scope: str,
        since: Optional[datetime] = None,
    ) -> List[RealTimeAlert]:
        query = f"SELECT {_ALERT_COLUMNS} FROM realtime_alerts WHERE organization_scope = %s"
        params: tuple = (scope,)
        if since is not None:
            query += " AND created_at >= %s"
            params += (since,)
        query += " ORDER BY created_at DESC"
        return [self._row_to_alert(r) for r in self._fetch(query, params, operation="list_alerts")]

    def save_subscription(
        self,
        subscription: NotificationSubscription,
    ) -> NotificationSubscription:
        query = f"""
            INSERT INTO notification_subscriptions ({_SUBSCRIPTION_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (subscriber_id, organization_scope) DO UPDATE SET
                role = EXCLUDED.role,
                alert_types = EXCLUDED.alert_types,
                is_active = EXCLUDED.is_active,
                updated_at = EXCLUDED.updated_at
        """
        params = (
            subscription.id,
            subscription.subscriber_id,
            subscription.role.value,
            subscription.organization_scope,
            sorted(t.value for t in subscription.alert_types),
            subscription.is_active,
            subscription.created_at,
            subscription.updated_at,
        )
        self._execute(query, params, operation="save_subscription", entity_id=subscription.id)
        return subscription

    def list_subscriptions(
        self,
        scope: Optional[str] = None,
    ) -> List[NotificationSubscription]:
        query = f"SELECT {_SUBSCRIPTION_COLUMNS} FROM notification_subscriptions"
        params: tuple = ()
        if scope is not None:
            query += " WHERE organization_scope = %s"
            params = (scope,)
        query += " ORDER BY created_at"
        return [
            self._row_to_subscription(r)
            for r in self._fetch(query, params, operation="list_subscriptions")
        ]

    def _execute(
        self,
        query: str,
        params: tuple,
        operation: str,
        entity_id: Optional[str] = None,
    ) -> int:
        try:
            with self.connection_manager.transaction() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    return cur.rowcount
        except Exception as e:
            logger.error(
                "POSTGRES_WRITE_FAILED",
                extra={"operation": operation, "entity_id": entity_id, "error": str(e)}
            )
            raise RepositoryError(f"{operation} failed: {e}") from e

    def _fetch(
        self,
        query: str,
        params: tuple,
        operation: str,
    ) -> List[tuple]:
        try:
            with self.connection_manager.transaction() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    return cur.fetchall()
        except Exception as e:
            logger.error(
                "POSTGRES_QUERY_FAILED",
                extra={"operation": operation, "error": str(e)}
            )
            raise RepositoryError(f"{operation} failed: {e}") from e

    @staticmethod
    def _row_to_alert(row: tuple) -> RealTimeAlert:
        (alert_id, alert_type, priority, title, message, scope, subject_id,
         subject_name, analysis, created_at, acknowledged, acknowledged_by,
         acknowledged_at, state) = row
        if isinstance(analysis, str):
            analysis = json.loads(analysis)
        return RealTimeAlert.from_dict({
            "id": alert_id,
            "type": alert_type,
            "priority": priority,
            "title": title,
            "message": message,
            "organization_scope": scope,
            "subject_id": subject_id,
            "subject_name": subject_name,
            "analysis": analysis,
            "timestamp": created_at,
            "acknowledged": acknowledged,
            "acknowledged_by": acknowledged_by,
            "acknowledged_at": acknowledged_at,
            "state": state,
        })

    @staticmethod
    def _row_to_subscription(row: tuple) -> NotificationSubscription:
        (sub_id, subscriber_id, role, scope, alert_types,
         is_active, created_at, updated_at) = row
        return NotificationSubscription.from_dict({
            "id": sub_id,
            "subscriber_id": subscriber_id,
            "role": role,
            "organization_scope": scope,
            "alert_types": alert_types,
            "is_active": is_active,
            "created_at": created_at,
            "updated_at": updated_at,
        })


# Process-wide fallback store, shared by every service in the process
_memory_store: Optional[InMemoryAlertStore] = None


def alert_store_from_env() -> AlertStore:
    """Choose the store backend from the environment.

    PostgreSQL when DB_HOST is set (tables are created when
    DB_CREATE_SCHEMA=true), otherwise one in-memory store shared by
    every caller in the process.
    """
    global _memory_store
    manager = connection_manager_from_env()
    if manager is None:
        if _memory_store is None:
            logger.warning(
                "ALERT_STORE_IN_MEMORY",
                extra={"reason": "DB_HOST not set", "durable": False}
            )
            _memory_store = InMemoryAlertStore()
        return _memory_store

    manager.initialize()
    store = PostgresAlertStore(manager)
    if os.getenv("DB_CREATE_SCHEMA", "false").lower() == "true":
        store.create_schema()
    return store
