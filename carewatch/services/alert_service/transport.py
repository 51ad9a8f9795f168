"""Notification transports - how one alert reaches one subscriber.

The dispatcher only sees NotificationTransport.deliver(); it treats a
False return and a raised exception the same way (delivery failed).
"""
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

import boto3
from botocore.config import Config

from carewatch.shared.models import RealTimeAlert

logger = logging.getLogger(__name__)


class NotificationTransport(ABC):
    """Delivers an alert to a single subscriber."""

    @abstractmethod
    def deliver(self, subscriber_id: str, alert: RealTimeAlert) -> bool:
        """Deliver alert to subscriber.

        Returns:
            True if the transport accepted the message
        """


class SnsPushTransport(NotificationTransport):
    """Publishes alerts to an SNS topic.

    Each message carries subscriber_id, priority and alert_type message
    attributes so per-device subscriptions can use filter policies.

    Failure Handling:
        - Disabled transport returns False without calling AWS
        - Client errors propagate to the dispatcher, which logs and
          isolates them per subscriber
    """

    def __init__(
        self,
        topic_arn: Optional[str] = None,
        enabled: bool = True,
        region: Optional[str] = None,
        connect_timeout: float = 2.0,
        read_timeout: float = 3.0,
    ):
        self.topic_arn = topic_arn or os.getenv("ALERT_SNS_TOPIC_ARN", "")
        self.enabled = enabled and bool(self.topic_arn)
        self.region = region or os.getenv("AWS_REGION", "us-east-1")
        self._client_config = Config(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": 2},
        )
        self._sns_client = None

        logger.info(
            "SNS_TRANSPORT_INITIALIZED",
            extra={
                "topic_arn": self.topic_arn,
                "enabled": self.enabled,
                "region": self.region,
            }
        )

    @classmethod
    def from_env(cls, read_timeout: float = 3.0) -> "SnsPushTransport":
        """Create transport from environment variables.

        read_timeout bounds each publish so an attempt cannot outlive the
        dispatcher's per-subscriber timeout by much.

        Environment variables:
            ALERT_SNS_TOPIC_ARN: Topic to publish to
            ALERT_PUSH_ENABLED: "true" to publish (default false)
            AWS_REGION: Region for the SNS client
        """
        return cls(
            topic_arn=os.getenv("ALERT_SNS_TOPIC_ARN"),
            enabled=os.getenv("ALERT_PUSH_ENABLED", "false").lower() == "true",
            read_timeout=read_timeout,
        )

    @property
    def sns_client(self):
        """Lazy initialization of SNS client."""
        if self._sns_client is None and self.enabled:
            self._sns_client = boto3.client(
                "sns",
                region_name=self.region,
                config=self._client_config,
            )
        return self._sns_client

    def deliver(self, subscriber_id: str, alert: RealTimeAlert) -> bool:
        if not self.enabled:
            logger.info(
                "ALERT_PUSH_SKIPPED",
                extra={
                    "alert_id": alert.id,
                    "subscriber_id": subscriber_id,
                    "reason": "push_disabled",
                }
            )
            return False

        response = self.sns_client.publish(
            TopicArn=self.topic_arn,
            Subject=alert.title[:100],
            Message=json.dumps(self._payload(alert)),
            MessageAttributes={
                "subscriber_id": {"DataType": "String", "StringValue": subscriber_id},
                "priority": {"DataType": "String", "StringValue": alert.priority.value},
                "alert_type": {"DataType": "String", "StringValue": alert.type.value},
            },
        )

        logger.info(
            "ALERT_PUSH_PUBLISHED",
            extra={
                "alert_id": alert.id,
                "subscriber_id": subscriber_id,
                "message_id": response.get("MessageId"),
            }
        )
        return True

    @staticmethod
    def _payload(alert: RealTimeAlert) -> dict:
        # Responders fetch the full record (with analysis) from the API
        return {
            "alert_id": alert.id,
            "type": alert.type.value,
            "priority": alert.priority.value,
            "title": alert.title,
            "message": alert.message,
            "organization_scope": alert.organization_scope,
            "timestamp": alert.timestamp.isoformat() + "Z",
        }
