"""Security alert dispatchers."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from adaptive_auth.common.exceptions import AlertDispatchError

logger = logging.getLogger(__name__)


class AlertDispatcher(ABC):
    """Delivers security alerts to users or operators."""

    @abstractmethod
    def send_alert(
        self,
        user_id: Optional[str],
        alert_type: str,
        severity: str,
        title: str,
        message: str,
        requires_action: bool,
    ) -> None:
        """Dispatch one alert.

        Raises:
            AlertDispatchError: If the alert could not be delivered
        """
        pass


class LoggingAlertDispatcher(AlertDispatcher):
    """Writes alerts to the application log."""

    def send_alert(self, user_id, alert_type, severity, title, message, requires_action) -> None:
        logger.warning(
            f"[{severity}] {alert_type} for user {user_id}: {title} - {message}"
            f" (requires_action={requires_action})"
        )


class SnsAlertDispatcher(AlertDispatcher):
    """Publishes alerts to an SNS topic."""

    def __init__(self, topic_arn: str, region: Optional[str] = None, sns_client=None):
        self.topic_arn = topic_arn
        self.sns = sns_client or boto3.client("sns", region_name=region)

    def send_alert(self, user_id, alert_type, severity, title, message, requires_action) -> None:
        payload = {
            "user_id": user_id,
            "alert_type": alert_type,
            "severity": severity,
            "title": title,
            "message": message,
            "requires_action": requires_action,
        }
        try:
            self.sns.publish(
                TopicArn=self.topic_arn,
                Subject=title[:100],
                Message=json.dumps(payload),
                MessageAttributes={
                    "alert_type": {"DataType": "String", "StringValue": alert_type},
                    "severity": {"DataType": "String", "StringValue": severity},
                },
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"SNS alert publish failed: {e}")
            raise AlertDispatchError(
                f"Failed to publish {alert_type} alert",
                details={"topic_arn": self.topic_arn},
            ) from e
        logger.info(f"Published {alert_type} alert ({severity}) for user {user_id}")
