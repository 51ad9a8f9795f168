"""Insights Service: trends and patterns over the alert history.

Read-only consumer of the alert store; never gates delivery.

This service provides:
- Severity trend (newer vs older alerts)
- Language and time-of-day patterns
- Short-range risk escalation estimate
- Per-day trend summaries for dashboards

Endpoints:
- GET /health - Health check
- GET /ready - Readiness check
- GET /insights - Insights for a scope and timeframe
- GET /trends - Trend summary for a scope
"""

from .aggregator import (
    InsightAggregator,
    Insight,
    InsightType,
    InsightSeverity,
    TrendSummary,
    TIMEFRAME_DAYS,
)

__all__ = [
    "InsightAggregator",
    "Insight",
    "InsightType",
    "InsightSeverity",
    "TrendSummary",
    "TIMEFRAME_DAYS",
]
