"""Alert dispatcher configuration."""
import os
from dataclasses import dataclass

from carewatch.shared.models import RiskLevel


@dataclass(frozen=True)
class DispatcherConfig:
    """Configuration for alert fan-out.

    Attributes:
        min_alert_level: Lowest risk that produces a distress alert
        max_delivery_workers: Size of the delivery thread pool
        delivery_timeout_seconds: Per-subscriber delivery deadline
        max_message_indicators: Indicators quoted in an alert message
    """
    min_alert_level: RiskLevel = RiskLevel.MEDIUM
    max_delivery_workers: int = 8
    delivery_timeout_seconds: float = 5.0
    max_message_indicators: int = 2

    def __post_init__(self):
        if self.max_delivery_workers < 1:
            raise ValueError(
                f"max_delivery_workers must be positive, got {self.max_delivery_workers}"
            )
        if self.delivery_timeout_seconds <= 0:
            raise ValueError(
                f"delivery_timeout_seconds must be positive, got {self.delivery_timeout_seconds}"
            )

    @classmethod
    def from_env(cls) -> "DispatcherConfig":
        """Create config from environment variables.

        Environment variables:
            ALERT_MIN_RISK_LEVEL: low | medium | high | critical (default medium)
            ALERT_DELIVERY_WORKERS: Thread pool size (default 8)
            ALERT_DELIVERY_TIMEOUT_SECONDS: Per-subscriber timeout (default 5)
        """
        return cls(
            min_alert_level=RiskLevel(os.getenv("ALERT_MIN_RISK_LEVEL", "medium").lower()),
            max_delivery_workers=int(os.getenv("ALERT_DELIVERY_WORKERS", "8")),
            delivery_timeout_seconds=float(os.getenv("ALERT_DELIVERY_TIMEOUT_SECONDS", "5")),
        )
