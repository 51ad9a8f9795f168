"""Insights Service HTTP Handler - counselor dashboard trends.

Endpoints:
- GET /health - Health check
- GET /ready - Readiness check
- GET /insights - Generated insights for a scope and timeframe
- GET /trends - Per-day trend summary for a scope
"""
import logging
import os
from datetime import datetime, timedelta
from typing import Optional

from flask import Flask, jsonify, request

from carewatch.shared.database import RepositoryError, alert_store_from_env
from carewatch.shared.utils import configure_pii_salt
from .aggregator import InsightAggregator, TIMEFRAME_DAYS

logger = logging.getLogger(__name__)

app = Flask(__name__)

# Configure PII salt from environment
pii_salt = os.getenv("PII_HASH_SALT", "default_dev_salt_change_in_production_32chars")
configure_pii_salt(pii_salt)

MAX_TREND_DAYS = TIMEFRAME_DAYS["semester"]

# Global aggregator instance
_aggregator: Optional[InsightAggregator] = None


def get_aggregator() -> InsightAggregator:
    """Get or create the global aggregator instance."""
    global _aggregator
    if _aggregator is None:
        _aggregator = InsightAggregator(alert_store_from_env())
    return _aggregator


def set_aggregator(aggregator: InsightAggregator) -> None:
    """Set the global aggregator (for testing)."""
    global _aggregator
    _aggregator = aggregator


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({"status": "healthy", "service": "insights-service"})


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check endpoint."""
    store_health = get_aggregator().store.health_check()
    if not store_health.get("healthy"):
        return jsonify({"status": "not_ready", "service": "insights-service"}), 503
    return jsonify({"status": "ready", "service": "insights-service"})


@app.route("/insights", methods=["GET"])
def insights():
    """Generate insights for a scope.

    Query params:
        scope: Required - Organization scope
        timeframe: Optional - week | month | semester (default week)
    """
    scope = request.args.get("scope")
    if not scope:
        return jsonify({"error": "scope is required"}), 400

    timeframe = request.args.get("timeframe", "week")
    if timeframe not in TIMEFRAME_DAYS:
        return jsonify({"error": f"timeframe must be one of {sorted(TIMEFRAME_DAYS)}"}), 400

    try:
        results = get_aggregator().generate_insights(scope, timeframe)
    except RepositoryError as e:
        logger.error("INSIGHTS_STORE_UNAVAILABLE", extra={"scope": scope, "error": str(e)})
        return jsonify({"error": "Alert store unavailable"}), 503

    return jsonify({
        "scope": scope,
        "timeframe": timeframe,
        "insights": [i.to_dict() for i in results],
        "count": len(results),
    })


@app.route("/trends", methods=["GET"])
def trends():
    """Trend summary for a scope.

    Query params:
        scope: Required - Organization scope
        days: Optional - Lookback period (default 7, max 120)
    """
    scope = request.args.get("scope")
    if not scope:
        return jsonify({"error": "scope is required"}), 400

    try:
        days = int(request.args.get("days", 7))
    except ValueError:
        return jsonify({"error": "days must be an integer"}), 400
    if not 1 <= days <= MAX_TREND_DAYS:
        return jsonify({"error": f"days must be between 1 and {MAX_TREND_DAYS}"}), 400

    now = datetime.utcnow()
    try:
        summary = get_aggregator().summarize(scope, since=now - timedelta(days=days), now=now)
    except RepositoryError as e:
        logger.error("TRENDS_STORE_UNAVAILABLE", extra={"scope": scope, "error": str(e)})
        return jsonify({"error": "Alert store unavailable"}), 503

    return jsonify(summary.to_dict())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8080"))
    app.run(host="0.0.0.0", port=port)
