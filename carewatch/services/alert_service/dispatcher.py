"""Alert dispatcher - persists alerts and fans them out to subscribers.

Flow:
1. Build the alert (from a distress analysis or a manual request)
2. Persist it synchronously with state DELIVERING
3. Deliver to every matching active subscription on a bounded pool
4. Move the record to DELIVERED once every attempt has finished (at
   once when nobody is subscribed), unless a responder acknowledged it
   first

Only step 2 blocks the caller. A persistence failure is raised, since
an alert that was never stored cannot be audited or acknowledged.
"""
import concurrent.futures
import dataclasses
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from carewatch.shared.database import AlertStore, RepositoryError, alert_store_from_env
from carewatch.shared.models import (
    AlertPriority,
    AlertState,
    AlertType,
    DistressAnalysis,
    RealTimeAlert,
    RiskLevel,
    SubscriberRole,
)
from carewatch.shared.utils import KeyedLocks, hash_pii
from .config import DispatcherConfig
from .subscriptions import SubscriptionRegistry
from .transport import NotificationTransport, SnsPushTransport

logger = logging.getLogger(__name__)


_RISK_TO_PRIORITY: Dict[RiskLevel, AlertPriority] = {
    RiskLevel.LOW: AlertPriority.LOW,
    RiskLevel.MEDIUM: AlertPriority.MEDIUM,
    RiskLevel.HIGH: AlertPriority.HIGH,
    RiskLevel.CRITICAL: AlertPriority.CRITICAL,
}


def map_risk_to_priority(risk_level: RiskLevel) -> AlertPriority:
    """Alert priority for a risk level (currently one-to-one)."""
    return _RISK_TO_PRIORITY[risk_level]


def build_alert_message(analysis: DistressAnalysis, max_indicators: int = 2) -> str:
    """Human-readable alert body for a distress analysis.

    Example:
        "HIGH risk level detected (70% confidence) in English feedback.
        Key indicators: distress: hopeless."
    """
    message = (
        f"{analysis.risk_level.value.upper()} risk level detected "
        f"({int(round(analysis.confidence * 100))}% confidence) in "
        f"{analysis.detected_language.display_name} feedback."
    )
    if analysis.indicators and max_indicators > 0:
        message += f" Key indicators: {', '.join(analysis.indicators[:max_indicators])}."
    if analysis.risk_level == RiskLevel.CRITICAL:
        message += " Immediate intervention recommended."
    return message


@dataclass(frozen=True)
class DeliveryReport:
    """Outcome of one alert's fan-out, by subscriber id."""
    alert_id: str
    delivered: Tuple[str, ...] = ()
    failed: Tuple[str, ...] = ()
    timed_out: Tuple[str, ...] = ()

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed) + len(self.timed_out)

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "delivered": list(self.delivered),
            "failed": list(self.failed),
            "timed_out": list(self.timed_out),
        }


class DispatchHandle:
    """Returned by dispatch(); callers may wait on it or ignore it."""

    def __init__(self, alert: RealTimeAlert, future: Optional[Future] = None):
        self.alert = alert
        self._future = future

    def done(self) -> bool:
        return self._future is None or self._future.done()

    def wait(self, timeout: Optional[float] = None) -> DeliveryReport:
        """Block until fan-out finishes.

        Raises:
            concurrent.futures.TimeoutError: If fan-out is still running
        """
        if self._future is None:
            return DeliveryReport(alert_id=self.alert.id)
        return self._future.result(timeout=timeout)


class AlertDispatcher:
    """Creates, persists, delivers and tracks acknowledgment of alerts."""

    def __init__(
        self,
        registry: SubscriptionRegistry,
        store: AlertStore,
        transport: NotificationTransport,
        config: Optional[DispatcherConfig] = None,
    ):
        self.registry = registry
        self.store = store
        self.transport = transport
        self.config = config or DispatcherConfig()

        self._delivery_pool = ThreadPoolExecutor(
            max_workers=self.config.max_delivery_workers,
            thread_name_prefix="alert-delivery",
        )
        # Coordinators wait on deliveries, so they need their own threads
        self._coordinator_pool = ThreadPoolExecutor(
            max_workers=self.config.max_delivery_workers,
            thread_name_prefix="alert-fanout",
        )
        self._alert_locks = KeyedLocks()

        logger.info(
            "ALERT_DISPATCHER_INITIALIZED",
            extra={
                "min_alert_level": self.config.min_alert_level.value,
                "max_delivery_workers": self.config.max_delivery_workers,
                "delivery_timeout_seconds": self.config.delivery_timeout_seconds,
                "transport": type(transport).__name__,
            }
        )

    def should_alert(self, analysis: DistressAnalysis) -> bool:
        if analysis.risk_level == RiskLevel.CRITICAL:
            return True
        return analysis.risk_level >= self.config.min_alert_level

    def build_distress_alert(
        self,
        analysis: DistressAnalysis,
        subject_id: Optional[str],
        subject_name: Optional[str],
        scope: str,
    ) -> RealTimeAlert:
        display_name = subject_name or subject_id or "Student"
        return RealTimeAlert(
            type=AlertType.DISTRESS,
            priority=map_risk_to_priority(analysis.risk_level),
            title=f"Mental Health Alert - {display_name}",
            message=build_alert_message(analysis, self.config.max_message_indicators),
            organization_scope=scope,
            subject_id=subject_id,
            subject_name=subject_name,
            analysis=analysis,
        )

    def process_distress(
        self,
        analysis: DistressAnalysis,
        subject_id: Optional[str],
        subject_name: Optional[str],
        scope: str,
    ) -> Optional[RealTimeAlert]:
        """Dispatch a distress alert if the analysis warrants one.

        Returns:
            The persisted alert, or None when below the alert threshold

        Raises:
            RepositoryError: If the alert cannot be persisted
        """
        if not self.should_alert(analysis):
            logger.debug(
                "ALERT_NOT_REQUIRED",
                extra={
                    "risk_level": analysis.risk_level.value,
                    "min_alert_level": self.config.min_alert_level.value,
                    "scope": scope,
                }
            )
            return None

        alert = self.build_distress_alert(analysis, subject_id, subject_name, scope)
        return self.dispatch(alert).alert

    def create_alert(
        self,
        alert_type: AlertType,
        priority: AlertPriority,
        title: str,
        message: str,
        scope: str,
        subject_id: Optional[str] = None,
        subject_name: Optional[str] = None,
    ) -> DispatchHandle:
        """Dispatch a manually raised alert (crisis, system, engagement)."""
        if not title or not message:
            raise ValueError("Alert title and message are required")
        alert = RealTimeAlert(
            type=alert_type,
            priority=priority,
            title=title,
            message=message,
            organization_scope=scope,
            subject_id=subject_id,
            subject_name=subject_name,
        )
        return self.dispatch(alert)

    def dispatch(self, alert: RealTimeAlert) -> DispatchHandle:
        """Persist an alert, then deliver it asynchronously.

        Args:
            alert: Alert to send

        Returns:
            DispatchHandle for the stored record

        Raises:
            RepositoryError: If the alert cannot be persisted

        Logs:
            - ALERT_PERSIST_FAILED: Store write failed (critical)
            - ALERT_NO_SUBSCRIBERS: Nobody will receive the alert
            - ALERT_SCOPE_MISSING_ADMIN: Scope has no active admin
            - ALERT_DISPATCHED: Fan-out started
        """
        record = dataclasses.replace(alert, state=AlertState.DELIVERING)
        try:
            record = self.store.save_alert(record)
        except RepositoryError as e:
            logger.critical(
                "ALERT_PERSIST_FAILED",
                extra={
                    "alert_id": record.id,
                    "alert_type": record.type.value,
                    "priority": record.priority.value,
                    "scope": record.organization_scope,
                    "error": str(e),
                    "action": "MANUAL_PROCESSING_REQUIRED",
                }
            )
            raise

        subscriptions = self.registry.list_active_for(record.organization_scope, record.type)

        if not self.registry.has_active_role(record.organization_scope, SubscriberRole.ADMIN):
            logger.warning(
                "ALERT_SCOPE_MISSING_ADMIN",
                extra={"alert_id": record.id, "scope": record.organization_scope}
            )

        if not subscriptions:
            logger.warning(
                "ALERT_NO_SUBSCRIBERS",
                extra={
                    "alert_id": record.id,
                    "alert_type": record.type.value,
                    "priority": record.priority.value,
                    "scope": record.organization_scope,
                }
            )
            return DispatchHandle(self._mark_delivered(record.id) or record)

        subscriber_ids = [sub.subscriber_id for sub in subscriptions]
        future = self._coordinator_pool.submit(self._fan_out, record, subscriber_ids)

        log = logger.critical if record.priority == AlertPriority.CRITICAL else logger.info
        log(
            "ALERT_DISPATCHED",
            extra={
                "alert_id": record.id,
                "alert_type": record.type.value,
                "priority": record.priority.value,
                "scope": record.organization_scope,
                "subject_id_hash": self._subject_hash(record),
                "subscriber_count": len(subscriber_ids),
            }
        )
        return DispatchHandle(record, future)

    @staticmethod
    def _subject_hash(alert: RealTimeAlert) -> Optional[str]:
        # The alert is already stored; a missing salt only drops the id from logs
        try:
            return hash_pii(alert.subject_id)
        except RuntimeError:
            return None

    def _attempt(
        self,
        subscriber_id: str,
        alert: RealTimeAlert,
        started: Dict[str, float],
    ) -> bool:
        started[subscriber_id] = time.monotonic()
        return self.transport.deliver(subscriber_id, alert)

    def _fan_out(self, alert: RealTimeAlert, subscriber_ids: List[str]) -> DeliveryReport:
        timeout = self.config.delivery_timeout_seconds
        # Each subscriber's timeout runs from when its delivery starts
        started: Dict[str, float] = {}
        pending: Dict[Future, str] = {
            self._delivery_pool.submit(self._attempt, subscriber_id, alert, started): subscriber_id
            for subscriber_id in subscriber_ids
        }

        outcomes: Dict[str, str] = {}
        while pending:
            done, _ = concurrent.futures.wait(
                pending,
                timeout=self._next_expiry(pending.values(), started, timeout),
                return_when=concurrent.futures.FIRST_COMPLETED,
            )
            for future in done:
                subscriber_id = pending.pop(future)
                outcomes[subscriber_id] = self._outcome(alert, subscriber_id, future)

            now = time.monotonic()
            for future, subscriber_id in list(pending.items()):
                began = started.get(subscriber_id)
                if began is None or now - began < timeout:
                    continue
                del pending[future]
                outcomes[subscriber_id] = "timed_out"
                logger.error(
                    "ALERT_DELIVERY_TIMEOUT",
                    extra={
                        "alert_id": alert.id,
                        "subscriber_id": subscriber_id,
                        "timeout_seconds": timeout,
                    }
                )

        report = DeliveryReport(
            alert_id=alert.id,
            delivered=tuple(s for s in subscriber_ids if outcomes[s] == "delivered"),
            failed=tuple(s for s in subscriber_ids if outcomes[s] == "failed"),
            timed_out=tuple(s for s in subscriber_ids if outcomes[s] == "timed_out"),
        )
        self._mark_delivered(alert.id)

        logger.info(
            "ALERT_FANOUT_COMPLETED",
            extra={
                "alert_id": alert.id,
                "delivered_count": len(report.delivered),
                "failed_count": len(report.failed),
                "timed_out_count": len(report.timed_out),
            }
        )
        return report

    @staticmethod
    def _next_expiry(
        subscriber_ids: Iterable[str],
        started: Dict[str, float],
        timeout: float,
    ) -> float:
        deadlines = [started[s] + timeout for s in subscriber_ids if s in started]
        if not deadlines:
            # Nothing running yet; check again once a full timeout has passed
            return timeout
        return max(0.0, min(deadlines) - time.monotonic())

    @staticmethod
    def _outcome(alert: RealTimeAlert, subscriber_id: str, future: Future) -> str:
        try:
            ok = future.result()
        except Exception as e:
            logger.error(
                "ALERT_DELIVERY_FAILED",
                extra={
                    "alert_id": alert.id,
                    "subscriber_id": subscriber_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            return "failed"

        if ok:
            return "delivered"
        logger.error(
            "ALERT_DELIVERY_FAILED",
            extra={
                "alert_id": alert.id,
                "subscriber_id": subscriber_id,
                "error": "transport_rejected",
            }
        )
        return "failed"

    def _mark_delivered(self, alert_id: str) -> Optional[RealTimeAlert]:
        """Move an alert to DELIVERED unless it was acknowledged first.

        Returns the current record, or None if it could not be read.
        """
        with self._alert_locks.hold(alert_id):
            try:
                current = self.store.get_alert(alert_id)
                if current is not None and current.state != AlertState.ACKNOWLEDGED:
                    current = self.store.update_alert(alert_id, {"state": AlertState.DELIVERED})
                return current
            except RepositoryError as e:
                # Delivery has already happened; the caller only loses the state change
                logger.error(
                    "ALERT_STATE_UPDATE_FAILED",
                    extra={
                        "alert_id": alert_id,
                        "target_state": AlertState.DELIVERED.value,
                        "error": str(e),
                    }
                )
                return None

    def acknowledge(self, alert_id: str, responder_id: str) -> Optional[RealTimeAlert]:
        """Acknowledge an alert on behalf of a responder.

        The first acknowledgment wins; later calls return the stored
        record unchanged without writing.

        Args:
            alert_id: Alert identifier
            responder_id: Responder acknowledging the alert

        Returns:
            The acknowledged alert, or None if not found

        Raises:
            RepositoryError: If the store write fails
        """
        with self._alert_locks.hold(alert_id):
            current = self.store.get_alert(alert_id)
            if current is None:
                logger.warning(
                    "ALERT_ACKNOWLEDGE_NOT_FOUND",
                    extra={"alert_id": alert_id}
                )
                return None

            if current.acknowledged:
                logger.info(
                    "ALERT_ALREADY_ACKNOWLEDGED",
                    extra={
                        "alert_id": alert_id,
                        "acknowledged_by": current.acknowledged_by,
                        "requested_by": responder_id,
                    }
                )
                return current

            now = datetime.utcnow()
            updated = self.store.update_alert(alert_id, {
                "acknowledged": True,
                "acknowledged_by": responder_id,
                "acknowledged_at": now,
                "state": AlertState.ACKNOWLEDGED,
            })

        logger.info(
            "ALERT_ACKNOWLEDGED",
            extra={
                "alert_id": alert_id,
                "acknowledged_by": responder_id,
                "priority": updated.priority.value,
                "time_to_acknowledge_seconds": (now - updated.timestamp).total_seconds(),
            }
        )
        return updated

    def get_alert(self, alert_id: str) -> Optional[RealTimeAlert]:
        return self.store.get_alert(alert_id)

    def list_alerts(self, scope: str, since: Optional[datetime] = None) -> List[RealTimeAlert]:
        return self.store.list_alerts(scope, since)

    def shutdown(self, wait: bool = True) -> None:
        self._coordinator_pool.shutdown(wait=wait)
        self._delivery_pool.shutdown(wait=wait)
        logger.info("ALERT_DISPATCHER_SHUTDOWN", extra={"wait": wait})


def dispatcher_from_env(store: Optional[AlertStore] = None) -> AlertDispatcher:
    """Wire a dispatcher (registry, store, SNS transport) from the environment."""
    store = store if store is not None else alert_store_from_env()
    config = DispatcherConfig.from_env()
    return AlertDispatcher(
        registry=SubscriptionRegistry(store),
        store=store,
        transport=SnsPushTransport.from_env(read_timeout=config.delivery_timeout_seconds),
        config=config,
    )
