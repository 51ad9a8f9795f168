"""Alert Service: subscription management and real-time alert fan-out.

Distress analyses at or above the alert threshold become RealTimeAlerts.
Each alert is persisted before anyone is notified, then delivered to
every active subscription for its scope and type.

Components:
- subscriptions.py: SubscriptionRegistry (store-backed)
- dispatcher.py: AlertDispatcher (persist, fan out, acknowledge)
- transport.py: NotificationTransport and the SNS push transport
- config.py: DispatcherConfig
- handler.py: Flask HTTP endpoints

Endpoints:
- POST /subscriptions - Register a subscriber for a scope
- PATCH /subscriptions/<subscriber_id> - Partial update
- DELETE /subscriptions/<subscriber_id>?scope= - Soft disable
- GET /subscriptions?scope=&alert_type= - List subscriptions
- POST /alerts - Raise a manual alert
- GET /alerts?scope=&days= - Alert history
- POST /alerts/<id>/acknowledge - Acknowledge an alert
"""

from .config import DispatcherConfig
from .subscriptions import SubscriptionRegistry, SubscriptionError
from .transport import NotificationTransport, SnsPushTransport
from .dispatcher import (
    AlertDispatcher,
    DeliveryReport,
    DispatchHandle,
    build_alert_message,
    dispatcher_from_env,
    map_risk_to_priority,
)

__all__ = [
    "DispatcherConfig",
    "SubscriptionRegistry",
    "SubscriptionError",
    "NotificationTransport",
    "SnsPushTransport",
    "AlertDispatcher",
    "DeliveryReport",
    "DispatchHandle",
    "build_alert_message",
    "dispatcher_from_env",
    "map_risk_to_priority",
]
