"""Durable store contract for alerts and subscriptions.

The dispatcher and registry depend only on AlertStore; storage
technology is chosen at the composition root. Every write failure is
surfaced as a RepositoryError - an alert record that silently fails to
persist is a dropped crisis signal.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional

from carewatch.shared.models import NotificationSubscription, RealTimeAlert

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class NotFoundError(RepositoryError):
    """Entity not found in the store."""
    pass


class DuplicateError(RepositoryError):
    """Duplicate entity already exists."""
    pass


# Fields of a RealTimeAlert that may change after creation
MUTABLE_ALERT_FIELDS: FrozenSet[str] = frozenset({
    "acknowledged",
    "acknowledged_by",
    "acknowledged_at",
    "state",
})


def validate_alert_patch(patch: Dict[str, Any]) -> None:
    """Reject patches that touch immutable alert fields.

    Raises:
        ValueError: If the patch is empty or names an immutable field
    """
    if not patch:
        raise ValueError("Alert patch must not be empty")
    illegal = set(patch) - MUTABLE_ALERT_FIELDS
    if illegal:
        raise ValueError(f"Cannot update immutable alert fields: {sorted(illegal)}")


class AlertStore(ABC):
    """Abstract durable store for alerts and subscriptions.

    Implementations must allow concurrent readers and serialize writers
    per key (per alert id, per subscriber+scope).
    """

    @abstractmethod
    def save_alert(self, alert: RealTimeAlert) -> RealTimeAlert:
        """Persist a new alert.

        Raises:
            DuplicateError: If an alert with the same id exists
            RepositoryError: If the write fails
        """

    @abstractmethod
    def get_alert(self, alert_id: str) -> Optional[RealTimeAlert]:
        """Return the alert or None."""

    @abstractmethod
    def update_alert(self, alert_id: str, patch: Dict[str, Any]) -> RealTimeAlert:
        """Apply a patch of mutable fields and return the new record.

        Raises:
            NotFoundError: If the alert does not exist
            ValueError: If the patch touches immutable fields
            RepositoryError: If the write fails
        """

    @abstractmethod
    def list_alerts(
        self,
        scope: str,
        since: Optional[datetime] = None,
    ) -> List[RealTimeAlert]:
        """Alerts for a scope created at or after `since`, newest first."""

    @abstractmethod
    def save_subscription(
        self,
        subscription: NotificationSubscription,
    ) -> NotificationSubscription:
        """Upsert a subscription keyed by (subscriber_id, scope)."""

    @abstractmethod
    def list_subscriptions(
        self,
        scope: Optional[str] = None,
    ) -> List[NotificationSubscription]:
        """All subscriptions, optionally restricted to one scope."""

    def health_check(self) -> Dict[str, Any]:
        """Readiness information for the backing storage."""
        return {"status": "ok", "healthy": True}
