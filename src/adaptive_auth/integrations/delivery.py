"""One-time code delivery channels.

Channels receive the plaintext code and must never log it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from adaptive_auth.common.exceptions import DeliveryError
from adaptive_auth.core.types import MfaMethod
from adaptive_auth.data.schemas import User

logger = logging.getLogger(__name__)


def mask_phone(phone: str) -> str:
    """Mask all but the last four digits."""
    if len(phone) <= 4:
        return "*" * len(phone)
    return "*" * (len(phone) - 4) + phone[-4:]


def mask_email(email: str) -> str:
    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


class CodeDeliveryChannel(ABC):
    """Sends a one-time code to a user."""

    @abstractmethod
    def send(self, user: User, code: str, method: MfaMethod) -> None:
        """
        Raises:
            DeliveryError: If the code could not be sent
        """
        pass


class LoggingCodeDelivery(CodeDeliveryChannel):
    """Development channel: logs that a code was sent, never the code."""

    def send(self, user: User, code: str, method: MfaMethod) -> None:
        if method == MfaMethod.SMS:
            if not user.phone:
                raise DeliveryError("User has no phone number", channel=method.value)
            target = mask_phone(user.phone)
        elif method == MfaMethod.EMAIL:
            target = mask_email(user.email)
        else:
            raise DeliveryError(f"Unsupported method: {method}", channel=str(method))
        logger.info(f"Verification code dispatched via {method.value} to {target}")


class AwsCodeDelivery(CodeDeliveryChannel):
    """SMS through SNS, email through SES."""

    SUBJECT = "Your verification code"

    def __init__(
        self,
        sender: str,
        region: Optional[str] = None,
        code_validity_minutes: int = 10,
        sns_client=None,
        ses_client=None,
    ):
        self.sender = sender
        self.code_validity_minutes = code_validity_minutes
        self.sns = sns_client or boto3.client("sns", region_name=region)
        self.ses = ses_client or boto3.client("ses", region_name=region)

    def _body(self, code: str) -> str:
        return (
            f"Your verification code is {code}. "
            f"It expires in {self.code_validity_minutes} minutes."
        )

    def send(self, user: User, code: str, method: MfaMethod) -> None:
        try:
            if method == MfaMethod.SMS:
                if not user.phone:
                    raise DeliveryError("User has no phone number", channel=method.value)
                self.sns.publish(
                    PhoneNumber=user.phone,
                    Message=self._body(code),
                    MessageAttributes={
                        "AWS.SNS.SMS.SMSType": {"DataType": "String", "StringValue": "Transactional"},
                    },
                )
                target = mask_phone(user.phone)
            elif method == MfaMethod.EMAIL:
                self.ses.send_email(
                    Source=self.sender,
                    Destination={"ToAddresses": [user.email]},
                    Message={
                        "Subject": {"Data": self.SUBJECT},
                        "Body": {"Text": {"Data": self._body(code)}},
                    },
                )
                target = mask_email(user.email)
            else:
                raise DeliveryError(f"Unsupported method: {method}", channel=str(method))
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Code delivery via {method.value} failed: {e}")
            raise DeliveryError(
                "Failed to send verification code", channel=method.value
            ) from e
        logger.info(f"Verification code sent via {method.value} to {target}")
