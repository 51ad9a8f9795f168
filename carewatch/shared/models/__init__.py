"""Shared domain models for the distress alerting platform."""
from .risk import (
    RiskLevel,
    Language,
    Sentiment,
    EmotionalMarkers,
    DistressAnalysis,
)
from .alerts import (
    AlertType,
    AlertPriority,
    AlertState,
    SubscriberRole,
    RealTimeAlert,
    NotificationSubscription,
    DEFAULT_ALERT_TYPES,
    parse_alert_types,
)

__all__ = [
    "RiskLevel",
    "Language",
    "Sentiment",
    "EmotionalMarkers",
    "DistressAnalysis",
    "AlertType",
    "AlertPriority",
    "AlertState",
    "SubscriberRole",
    "RealTimeAlert",
    "NotificationSubscription",
    "DEFAULT_ALERT_TYPES",
    "parse_alert_types",
]
