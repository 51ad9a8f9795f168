"""Alert and subscription domain models.

RealTimeAlert is what responders receive; NotificationSubscription is a
responder's standing preference for a scope. Both are frozen - state
changes go through the store and produce a new record.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional
import uuid

from .risk import DistressAnalysis, RiskLevel


class AlertType(Enum):
    """Kinds of alerts responders can subscribe to."""
    DISTRESS = "distress"
    ENGAGEMENT = "engagement"
    SYSTEM = "system"
    CRISIS = "crisis"


class AlertPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        """Storage encoding: low=2 ... critical=5."""
        return RiskLevel(self.value).severity


class AlertState(Enum):
    """State machine for an alert's lifecycle.

    CREATED -> DELIVERING -> DELIVERED -> ACKNOWLEDGED (terminal).
    Acknowledgment may also happen while delivery is still running.
    """
    CREATED = "created"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    ACKNOWLEDGED = "acknowledged"


class SubscriberRole(Enum):
    TEACHER = "teacher"
    ADMIN = "admin"
    COUNSELOR = "counselor"


DEFAULT_ALERT_TYPES: FrozenSet[AlertType] = frozenset({
    AlertType.DISTRESS,
    AlertType.CRISIS,
})


def new_alert_id() -> str:
    return f"alert_{uuid.uuid4().hex[:12]}"


def new_subscription_id() -> str:
    return f"sub_{uuid.uuid4().hex[:12]}"


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).rstrip("Z"))


@dataclass(frozen=True)
class RealTimeAlert:
    """Alert fanned out to subscribed responders and kept for audit.

    Attributes:
        id: Unique alert identifier, generated at creation
        type: Alert category used for subscription matching
        priority: Delivery priority (derived from risk for distress)
        title: Short human-readable headline
        message: Alert body
        organization_scope: Site/school the alert belongs to
        subject_id: Student the alert is about, if any
        subject_name: Display name of the subject, if any
        analysis: Embedded copy of the triggering analysis
        timestamp: Creation time (UTC)
        acknowledged: Whether a responder has acknowledged it
        acknowledged_by: Responder who acknowledged first
        acknowledged_at: When the first acknowledgment happened
        state: Lifecycle state
    """
    type: AlertType
    priority: AlertPriority
    title: str
    message: str
    organization_scope: str
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    analysis: Optional[DistressAnalysis] = None
    id: str = field(default_factory=new_alert_id)
    timestamp: datetime = field(default_factory=datetime.utcnow)
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    state: AlertState = AlertState.CREATED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and storage."""
        return {
            "id": self.id,
            "type": self.type.value,
            "priority": self.priority.value,
            "title": self.title,
            "message": self.message,
            "organization_scope": self.organization_scope,
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "timestamp": self.timestamp.isoformat() + "Z",
            "acknowledged": self.acknowledged,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": (
                self.acknowledged_at.isoformat() + "Z"
                if self.acknowledged_at else None
            ),
            "state": self.state.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RealTimeAlert":
        analysis = data.get("analysis")
        return cls(
            id=data["id"],
            type=AlertType(data["type"]),
            priority=AlertPriority(data["priority"]),
            title=data["title"],
            message=data["message"],
            organization_scope=data["organization_scope"],
            subject_id=data.get("subject_id"),
            subject_name=data.get("subject_name"),
            analysis=DistressAnalysis.from_dict(analysis) if analysis else None,
            timestamp=_parse_datetime(data["timestamp"]),
            acknowledged=bool(data.get("acknowledged", False)),
            acknowledged_by=data.get("acknowledged_by"),
            acknowledged_at=_parse_datetime(data.get("acknowledged_at")),
            state=AlertState(data.get("state", AlertState.CREATED.value)),
        )


@dataclass(frozen=True)
class NotificationSubscription:
    """A responder's preference to receive alerts for one scope.

    At most one record exists per (subscriber_id, organization_scope);
    disabling sets is_active=False instead of deleting.
    """
    subscriber_id: str
    role: SubscriberRole
    organization_scope: str
    alert_types: FrozenSet[AlertType] = DEFAULT_ALERT_TYPES
    is_active: bool = True
    id: str = field(default_factory=new_subscription_id)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        if not self.subscriber_id:
            raise ValueError("subscriber_id is required")
        if not self.organization_scope:
            raise ValueError("organization_scope is required")
        # Normalise any iterable of types into a frozenset
        object.__setattr__(self, "alert_types", frozenset(self.alert_types))

    @property
    def key(self) -> tuple:
        return (self.subscriber_id, self.organization_scope)

    def accepts(self, alert_type: AlertType) -> bool:
        return self.is_active and alert_type in self.alert_types

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subscriber_id": self.subscriber_id,
            "role": self.role.value,
            "organization_scope": self.organization_scope,
            "alert_types": sorted(t.value for t in self.alert_types),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() + "Z",
            "updated_at": self.updated_at.isoformat() + "Z",
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationSubscription":
        return cls(
            id=data["id"],
            subscriber_id=data["subscriber_id"],
            role=SubscriberRole(data["role"]),
            organization_scope=data["organization_scope"],
            alert_types=parse_alert_types(data.get("alert_types", ())),
            is_active=bool(data.get("is_active", True)),
            created_at=_parse_datetime(data.get("created_at")) or datetime.utcnow(),
            updated_at=_parse_datetime(data.get("updated_at")) or datetime.utcnow(),
        )


def parse_alert_types(values: Iterable[Any]) -> FrozenSet[AlertType]:
    """Convert strings or AlertType values into a frozenset.

    Raises:
        ValueError: If any value is not a known alert type
    """
    return frozenset(
        v if isinstance(v, AlertType) else AlertType(str(v).lower())
        for v in values
    )
