"""Tests for the AlertStore implementations."""
import json
import threading
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from carewatch.shared.database import (
    DuplicateError,
    InMemoryAlertStore,
    NotFoundError,
    PostgresAlertStore,
    RepositoryError,
    alert_store_from_env,
)
from carewatch.shared.models import (
    AlertPriority,
    AlertState,
    AlertType,
    DistressAnalysis,
    Language,
    NotificationSubscription,
    RealTimeAlert,
    RiskLevel,
    SubscriberRole,
)


def make_alert(scope="school_001", **overrides):
    fields = dict(
        type=AlertType.DISTRESS,
        priority=AlertPriority.HIGH,
        title="Mental Health Alert - Student",
        message="HIGH risk level detected",
        organization_scope=scope,
    )
    fields.update(overrides)
    return RealTimeAlert(**fields)


class TestInMemoryAlertStore:
    """Tests for InMemoryAlertStore."""

    @pytest.fixture
    def store(self):
        return InMemoryAlertStore()

    def test_save_and_get(self, store):
        alert = make_alert()
        store.save_alert(alert)

        assert store.get_alert(alert.id) == alert

    def test_get_missing_returns_none(self, store):
        assert store.get_alert("alert_missing") is None

    def test_duplicate_save_rejected(self, store):
        alert = make_alert()
        store.save_alert(alert)

        with pytest.raises(DuplicateError):
            store.save_alert(alert)

    def test_update_applies_patch(self, store):
        alert = store.save_alert(make_alert())
        now = datetime.utcnow()

        updated = store.update_alert(alert.id, {
            "acknowledged": True,
            "acknowledged_by": "counselor_1",
            "acknowledged_at": now,
            "state": AlertState.ACKNOWLEDGED,
        })

        assert updated.acknowledged is True
        assert updated.acknowledged_by == "counselor_1"
        assert store.get_alert(alert.id).state == AlertState.ACKNOWLEDGED
        # Original record object is untouched
        assert alert.acknowledged is False

    def test_update_missing_raises(self, store):
        with pytest.raises(NotFoundError):
            store.update_alert("alert_missing", {"acknowledged": True})

    def test_update_rejects_immutable_field(self, store):
        alert = store.save_alert(make_alert())

        with pytest.raises(ValueError):
            store.update_alert(alert.id, {"priority": AlertPriority.LOW})

    def test_list_alerts_filters_scope_and_time(self, store):
        now = datetime.utcnow()
        old = store.save_alert(make_alert(timestamp=now - timedelta(days=10)))
        recent = store.save_alert(make_alert(timestamp=now - timedelta(hours=1)))
        newest = store.save_alert(make_alert(timestamp=now))
        store.save_alert(make_alert(scope="school_002"))

        alerts = store.list_alerts("school_001", since=now - timedelta(days=7))

        assert [a.id for a in alerts] == [newest.id, recent.id]
        assert old.id not in [a.id for a in alerts]

    def test_subscription_upsert_by_key(self, store):
        first = NotificationSubscription(
            subscriber_id="teacher_1",
            role=SubscriberRole.TEACHER,
            organization_scope="school_001",
        )
        store.save_subscription(first)
        store.save_subscription(
            NotificationSubscription(
                id=first.id,
                subscriber_id="teacher_1",
                role=SubscriberRole.TEACHER,
                organization_scope="school_001",
                is_active=False,
            )
        )

        subs = store.list_subscriptions("school_001")
        assert len(subs) == 1
        assert subs[0].is_active is False

    def test_concurrent_updates_do_not_lose_records(self, store):
        alerts = [store.save_alert(make_alert()) for _ in range(20)]

        def acknowledge(alert):
            store.update_alert(alert.id, {"acknowledged": True})

        threads = [threading.Thread(target=acknowledge, args=(a,)) for a in alerts]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(store.get_alert(a.id).acknowledged for a in alerts)


class TestPostgresAlertStore:
    """Tests for PostgresAlertStore against a mocked connection."""

    @pytest.fixture
    def cursor(self):
        return MagicMock()

    @pytest.fixture
    def store(self, cursor):
        conn = MagicMock()
        conn.cursor.return_value.__enter__.return_value = cursor
        manager = MagicMock()
        manager.transaction.return_value.__enter__.return_value = conn
        return PostgresAlertStore(manager)

    def test_save_alert_serializes_analysis(self, store, cursor):
        cursor.rowcount = 1
        analysis = DistressAnalysis(
            risk_level=RiskLevel.HIGH,
            confidence=0.7,
            detected_language=Language.ENGLISH,
            indicators=("distress: hopeless",),
        )
        alert = make_alert(analysis=analysis)

        store.save_alert(alert)

        query, params = cursor.execute.call_args.args
        assert "INSERT INTO realtime_alerts" in query
        assert params[0] == alert.id
        assert json.loads(params[8])["risk_level"] == "high"
        assert params[-1] == 4  # severity_level

    def test_save_alert_duplicate(self, store, cursor):
        cursor.rowcount = 0

        with pytest.raises(DuplicateError):
            store.save_alert(make_alert())

    def test_write_failure_wrapped(self, store, cursor):
        cursor.execute.side_effect = RuntimeError("disk full")

        with pytest.raises(RepositoryError):
            store.save_alert(make_alert())

    def test_get_alert_maps_row(self, store, cursor):
        created = datetime(2026, 3, 2, 9, 30)
        cursor.fetchall.return_value = [(
            "alert_abc", "distress", "critical", "Title", "Body", "school_001",
            "student_1", "Ana", {"risk_level": "critical", "confidence": 0.9},
            created, False, None, None, "delivering",
        )]

        alert = store.get_alert("alert_abc")

        assert alert.id == "alert_abc"
        assert alert.priority == AlertPriority.CRITICAL
        assert alert.analysis.risk_level == RiskLevel.CRITICAL
        assert alert.state == AlertState.DELIVERING
        assert alert.timestamp == created

    def test_update_alert_not_found(self, store, cursor):
        cursor.fetchall.return_value = []

        with pytest.raises(NotFoundError):
            store.update_alert("alert_missing", {"acknowledged": True})

    def test_update_alert_converts_state(self, store, cursor):
        cursor.fetchall.return_value = [(
            "alert_abc", "crisis", "high", "Title", "Body", "school_001",
            None, None, None, datetime(2026, 3, 2), False, None, None, "delivered",
        )]

        store.update_alert("alert_abc", {"state": AlertState.DELIVERED})

        query, params = cursor.execute.call_args.args
        assert query.startswith("UPDATE realtime_alerts SET state = %s")
        assert params == ("delivered", "alert_abc")

    def test_list_subscriptions_maps_rows(self, store, cursor):
        now = datetime(2026, 3, 2)
        cursor.fetchall.return_value = [(
            "sub_1", "counselor_1", "counselor", "school_001",
            ["crisis", "distress"], True, now, now,
        )]

        subs = store.list_subscriptions("school_001")

        assert subs[0].role == SubscriberRole.COUNSELOR
        assert subs[0].alert_types == frozenset({AlertType.CRISIS, AlertType.DISTRESS})


class TestHealthCheck:
    """Tests for store readiness reporting."""

    def test_in_memory_always_healthy(self):
        assert InMemoryAlertStore().health_check()["healthy"] is True

    def test_postgres_delegates_to_pool(self):
        manager = MagicMock()
        manager.health_check.return_value = {"status": "error", "healthy": False}

        health = PostgresAlertStore(manager).health_check()

        assert health["healthy"] is False
        manager.health_check.assert_called_once()


class TestStoreFromEnv:
    """Tests for alert_store_from_env()."""

    def test_in_memory_store_is_shared(self):
        with patch.dict("os.environ", {}, clear=True):
            first = alert_store_from_env()
            second = alert_store_from_env()

        assert isinstance(first, InMemoryAlertStore)
        assert first is second
