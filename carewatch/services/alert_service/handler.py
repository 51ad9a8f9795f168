"""Alert Service HTTP handler - subscriptions, alerts and acknowledgment.

Alerts are persisted before they are delivered, so every endpoint that
creates or acknowledges an alert returns 503 when the store is down
rather than pretending the action happened.
"""
import logging
import os
from datetime import datetime, timedelta

from flask import Flask, jsonify, request

from carewatch.shared.database import RepositoryError, alert_store_from_env
from carewatch.shared.models import (
    AlertPriority,
    AlertType,
    SubscriberRole,
    parse_alert_types,
)
from carewatch.shared.utils import configure_pii_salt
from .dispatcher import dispatcher_from_env
from .subscriptions import SubscriptionError

logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

# Configure PII salt from environment
pii_salt = os.getenv("PII_HASH_SALT", "default_dev_salt_change_in_production_32chars")
configure_pii_salt(pii_salt)

store = alert_store_from_env()
dispatcher = dispatcher_from_env(store)
registry = dispatcher.registry


def _bad_request(error: Exception, event: str):
    logger.warning(event, extra={"reason": str(error)})
    return jsonify({"error": str(error)}), 400


def _store_unavailable(error: RepositoryError, event: str):
    logger.error(event, extra={"error": str(error), "error_type": type(error).__name__})
    return jsonify({"error": "Alert store unavailable"}), 503


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "alert-service",
        "store": type(store).__name__,
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check - verifies the alert store is reachable."""
    store_health = store.health_check()
    if not store_health.get("healthy"):
        return jsonify({"status": "not_ready", "store": store_health}), 503
    return jsonify({"status": "ready", "store": store_health}), 200


@app.route("/subscriptions", methods=["POST"])
def register_subscription():
    """Register a subscriber for a scope.

    Request Body:
        {
            "subscriber_id": "counselor_123",
            "role": "teacher" | "admin" | "counselor",
            "organization_scope": "school_001",
            "alert_types": ["distress", "crisis"] (optional)
        }
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Request body required"}), 400

    subscriber_id = data.get("subscriber_id")
    scope = data.get("organization_scope")
    if not subscriber_id or not scope or not data.get("role"):
        return jsonify({"error": "Missing subscriber_id, role or organization_scope"}), 400

    try:
        alert_types = data.get("alert_types")
        subscription = registry.register(
            subscriber_id=subscriber_id,
            role=SubscriberRole(str(data["role"]).lower()),
            scope=scope,
            alert_types=parse_alert_types(alert_types) if alert_types is not None else None,
        )
    except (ValueError, SubscriptionError) as e:
        return _bad_request(e, "SUBSCRIPTION_REQUEST_INVALID")
    except RepositoryError as e:
        return _store_unavailable(e, "SUBSCRIPTION_REGISTER_FAILED")

    return jsonify(subscription.to_dict()), 201


@app.route("/subscriptions/<subscriber_id>", methods=["PATCH"])
def update_subscription(subscriber_id: str):
    """Partially update a subscription.

    Request Body (all optional):
        {
            "organization_scope": "school_001",
            "role": "counselor",
            "alert_types": ["crisis"],
            "is_active": false
        }
    """
    data = request.get_json(silent=True) or {}

    is_active = data.get("is_active")
    if is_active is not None and not isinstance(is_active, bool):
        return jsonify({"error": "is_active must be a boolean"}), 400

    try:
        role = data.get("role")
        alert_types = data.get("alert_types")
        subscription = registry.update(
            subscriber_id=subscriber_id,
            scope=data.get("organization_scope"),
            role=SubscriberRole(str(role).lower()) if role is not None else None,
            alert_types=parse_alert_types(alert_types) if alert_types is not None else None,
            is_active=is_active,
        )
    except (ValueError, SubscriptionError) as e:
        return _bad_request(e, "SUBSCRIPTION_REQUEST_INVALID")
    except RepositoryError as e:
        return _store_unavailable(e, "SUBSCRIPTION_UPDATE_FAILED")

    return jsonify(subscription.to_dict()), 200


@app.route("/subscriptions/<subscriber_id>", methods=["DELETE"])
def deactivate_subscription(subscriber_id: str):
    """Soft-disable a subscription (is_active=false)."""
    scope = request.args.get("scope")
    if not scope:
        return jsonify({"error": "Missing required parameter: scope"}), 400

    try:
        subscription = registry.deactivate(subscriber_id, scope)
    except RepositoryError as e:
        return _store_unavailable(e, "SUBSCRIPTION_DEACTIVATE_FAILED")

    if subscription is None:
        return jsonify({"error": "Subscription not found"}), 404
    return jsonify(subscription.to_dict()), 200


@app.route("/subscriptions", methods=["GET"])
def list_subscriptions():
    """List subscriptions for a scope.

    Query Parameters:
        scope: Organization scope (required)
        alert_type: Only active subscriptions accepting this type
    """
    scope = request.args.get("scope")
    if not scope:
        return jsonify({"error": "Missing required parameter: scope"}), 400

    alert_type = request.args.get("alert_type")
    if alert_type:
        try:
            subs = registry.list_active_for(scope, AlertType(alert_type.lower()))
        except ValueError as e:
            return _bad_request(e, "SUBSCRIPTION_REQUEST_INVALID")
    else:
        subs = registry.list_for_scope(scope)

    return jsonify({
        "scope": scope,
        "subscriptions": [s.to_dict() for s in subs],
        "count": len(subs),
    }), 200


@app.route("/alerts", methods=["POST"])
def create_alert():
    """Raise a manual alert.

    Request Body:
        {
            "type": "crisis" | "system" | "engagement" | "distress",
            "priority": "low" | "medium" | "high" | "critical",
            "title": "...",
            "message": "...",
            "organization_scope": "school_001",
            "subject_id": "student_789" (optional),
            "subject_name": "..." (optional)
        }
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Request body required"}), 400
    if not data.get("organization_scope"):
        return jsonify({"error": "Missing required field: organization_scope"}), 400

    try:
        handle = dispatcher.create_alert(
            alert_type=AlertType(str(data.get("type", "system")).lower()),
            priority=AlertPriority(str(data.get("priority", "medium")).lower()),
            title=data.get("title"),
            message=data.get("message"),
            scope=data["organization_scope"],
            subject_id=data.get("subject_id"),
            subject_name=data.get("subject_name"),
        )
    except ValueError as e:
        return _bad_request(e, "ALERT_REQUEST_INVALID")
    except RepositoryError as e:
        return _store_unavailable(e, "ALERT_CREATE_FAILED")

    return jsonify(handle.alert.to_dict()), 201


@app.route("/alerts", methods=["GET"])
def list_alerts():
    """Alert history for a scope.

    Query Parameters:
        scope: Organization scope (required)
        days: Lookback window in days (default 7)
    """
    scope = request.args.get("scope")
    if not scope:
        return jsonify({"error": "Missing required parameter: scope"}), 400

    try:
        days = int(request.args.get("days", 7))
    except ValueError as e:
        return _bad_request(e, "ALERT_REQUEST_INVALID")

    try:
        alerts = dispatcher.list_alerts(scope, since=datetime.utcnow() - timedelta(days=days))
    except RepositoryError as e:
        return _store_unavailable(e, "ALERT_LIST_FAILED")

    return jsonify({
        "scope": scope,
        "alerts": [a.to_dict() for a in alerts],
        "count": len(alerts),
        "unacknowledged": sum(1 for a in alerts if not a.acknowledged),
    }), 200


@app.route("/alerts/<alert_id>/acknowledge", methods=["POST"])
def acknowledge_alert(alert_id: str):
    """Acknowledge an alert.

    Request Body:
        {
            "acknowledged_by": "counselor_123"
        }
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Request body required"}), 400

    acknowledged_by = data.get("acknowledged_by")
    if not acknowledged_by:
        return jsonify({"error": "Missing acknowledged_by"}), 400

    try:
        alert = dispatcher.acknowledge(alert_id, acknowledged_by)
    except RepositoryError as e:
        return _store_unavailable(e, "ALERT_ACKNOWLEDGE_FAILED")

    if alert is None:
        return jsonify({"error": "Alert not found"}), 404

    return jsonify({
        "alert_id": alert.id,
        "state": alert.state.value,
        "acknowledged": alert.acknowledged,
        "acknowledged_by": alert.acknowledged_by,
        "acknowledged_at": alert.acknowledged_at.isoformat() + "Z",
    }), 200


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8003"))
    app.run(host="0.0.0.0", port=port, debug=False)
