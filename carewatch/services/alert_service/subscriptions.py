"""Subscription registry - who receives which alerts for which scope.

The store is the only source of truth, so every service sharing a store
sees the same subscribers. Writers for a scope take that scope's lock
and persist the new record; readers take one list_subscriptions()
snapshot and so see either the pre- or post-update state.
"""
import dataclasses
import logging
from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional

from carewatch.shared.database import AlertStore
from carewatch.shared.models import (
    DEFAULT_ALERT_TYPES,
    AlertType,
    NotificationSubscription,
    SubscriberRole,
)
from carewatch.shared.utils import KeyedLocks

logger = logging.getLogger(__name__)


class SubscriptionError(Exception):
    """Invalid subscription request (ambiguous scope, empty types)."""
    pass


class SubscriptionRegistry:
    """Subscription operations over an AlertStore.

    At most one record exists per (subscriber_id, scope); writes replace
    it, keeping its id and created_at.
    """

    def __init__(self, store: AlertStore):
        self.store = store
        self._scope_locks = KeyedLocks()

    def register(
        self,
        subscriber_id: str,
        role: SubscriberRole,
        scope: str,
        alert_types: Optional[Iterable[AlertType]] = None,
    ) -> NotificationSubscription:
        """Register (or re-register) a subscriber for a scope.

        Args:
            subscriber_id: Responder identifier
            role: Responder role
            scope: Organization scope (school/site)
            alert_types: Types to receive; defaults to distress and crisis

        Returns:
            The stored subscription

        Raises:
            SubscriptionError: If alert_types is given but empty
            RepositoryError: If the store write fails
        """
        types = self._validate_types(alert_types) or DEFAULT_ALERT_TYPES

        with self._scope_locks.hold(scope):
            existing = self._find(scope, subscriber_id)
            now = datetime.utcnow()
            if existing is None:
                record = NotificationSubscription(
                    subscriber_id=subscriber_id,
                    role=role,
                    organization_scope=scope,
                    alert_types=types,
                    created_at=now,
                    updated_at=now,
                )
            else:
                record = dataclasses.replace(
                    existing,
                    role=role,
                    alert_types=types,
                    is_active=True,
                    updated_at=now,
                )
            self._commit(record)

        logger.info(
            "SUBSCRIPTION_REGISTERED",
            extra={
                "subscription_id": record.id,
                "subscriber_id": subscriber_id,
                "role": role.value,
                "scope": scope,
                "alert_types": sorted(t.value for t in types),
                "replaced": existing is not None,
            }
        )
        return record

    def update(
        self,
        subscriber_id: str,
        scope: Optional[str] = None,
        role: Optional[SubscriberRole] = None,
        alert_types: Optional[Iterable[AlertType]] = None,
        is_active: Optional[bool] = None,
    ) -> NotificationSubscription:
        """Partially update a subscription, creating it if absent.

        When scope is omitted the subscriber must have exactly one
        record. A new record takes the given role or defaults to teacher.

        Raises:
            SubscriptionError: If the scope cannot be resolved or
                alert_types is empty
            RepositoryError: If the store write fails
        """
        types = self._validate_types(alert_types)
        if scope is None:
            scope = self._resolve_single_scope(subscriber_id)

        with self._scope_locks.hold(scope):
            existing = self._find(scope, subscriber_id)
            now = datetime.utcnow()
            if existing is None:
                record = NotificationSubscription(
                    subscriber_id=subscriber_id,
                    role=role or SubscriberRole.TEACHER,
                    organization_scope=scope,
                    alert_types=types or DEFAULT_ALERT_TYPES,
                    is_active=True if is_active is None else is_active,
                    created_at=now,
                    updated_at=now,
                )
            else:
                changes = {"updated_at": now}
                if role is not None:
                    changes["role"] = role
                if types is not None:
                    changes["alert_types"] = types
                if is_active is not None:
                    changes["is_active"] = is_active
                record = dataclasses.replace(existing, **changes)
            self._commit(record)

        logger.info(
            "SUBSCRIPTION_UPDATED",
            extra={
                "subscription_id": record.id,
                "subscriber_id": subscriber_id,
                "scope": scope,
                "is_active": record.is_active,
                "created": existing is None,
            }
        )
        return record

    def deactivate(self, subscriber_id: str, scope: str) -> Optional[NotificationSubscription]:
        """Soft-disable a subscription. Returns None if it does not exist."""
        if self.get(subscriber_id, scope) is None:
            logger.warning(
                "SUBSCRIPTION_DEACTIVATE_NOT_FOUND",
                extra={"subscriber_id": subscriber_id, "scope": scope}
            )
            return None
        return self.update(subscriber_id, scope=scope, is_active=False)

    def get(self, subscriber_id: str, scope: str) -> Optional[NotificationSubscription]:
        return self._find(scope, subscriber_id)

    def list_for_subscriber(self, subscriber_id: str) -> List[NotificationSubscription]:
        records = [
            sub for sub in self.store.list_subscriptions()
            if sub.subscriber_id == subscriber_id
        ]
        return sorted(records, key=lambda sub: sub.organization_scope)

    def list_for_scope(self, scope: str) -> List[NotificationSubscription]:
        return self.store.list_subscriptions(scope)

    def list_active_for(self, scope: str, alert_type: AlertType) -> List[NotificationSubscription]:
        """Active subscriptions in scope that accept alert_type.

        Reads one consistent snapshot of the scope from the store.
        """
        return [sub for sub in self.store.list_subscriptions(scope) if sub.accepts(alert_type)]

    def has_active_role(self, scope: str, role: SubscriberRole) -> bool:
        return any(
            sub.is_active and sub.role == role
            for sub in self.store.list_subscriptions(scope)
        )

    def _find(self, scope: str, subscriber_id: str) -> Optional[NotificationSubscription]:
        for sub in self.store.list_subscriptions(scope):
            if sub.subscriber_id == subscriber_id:
                return sub
        return None

    def _commit(self, record: NotificationSubscription) -> None:
        # Caller holds the scope lock
        self.store.save_subscription(record)

    def _resolve_single_scope(self, subscriber_id: str) -> str:
        records = self.list_for_subscriber(subscriber_id)
        if len(records) != 1:
            logger.warning(
                "SUBSCRIPTION_SCOPE_AMBIGUOUS",
                extra={"subscriber_id": subscriber_id, "record_count": len(records)}
            )
            raise SubscriptionError(
                f"Scope required: subscriber {subscriber_id} has {len(records)} subscriptions"
            )
        return records[0].organization_scope

    @staticmethod
    def _validate_types(
        alert_types: Optional[Iterable[AlertType]],
    ) -> Optional[FrozenSet[AlertType]]:
        if alert_types is None:
            return None
        types = frozenset(alert_types)
        if not types:
            raise SubscriptionError("alert_types must not be empty")
        return types
