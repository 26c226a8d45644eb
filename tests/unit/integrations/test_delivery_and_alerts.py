"""Tests for code delivery channels and alert dispatchers."""

import json
import logging
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from adaptive_auth.common.exceptions import AlertDispatchError, DeliveryError
from adaptive_auth.core.types import MfaMethod
from adaptive_auth.data.schemas import User
from adaptive_auth.integrations.alerts import LoggingAlertDispatcher, SnsAlertDispatcher
from adaptive_auth.integrations.delivery import (
    AwsCodeDelivery,
    LoggingCodeDelivery,
    mask_email,
    mask_phone,
)


def client_error(operation):
    return ClientError({"Error": {"Code": "Throttling", "Message": "slow down"}}, operation)


@pytest.fixture
def sms_user():
    return User(user_id="u1", email="ana@example.com", phone="+5511999990000", mfa_option=MfaMethod.SMS)


class TestMasking:

    def test_mask_phone(self):
        assert mask_phone("+5511999990000") == "**********0000"
        assert mask_phone("123") == "***"

    def test_mask_email(self):
        assert mask_email("ana@example.com") == "a***@example.com"
        assert mask_email("broken") == "***"


class TestLoggingCodeDelivery:
    """Development channel."""

    def test_code_never_logged(self, sms_user, caplog):
        with caplog.at_level(logging.INFO):
            LoggingCodeDelivery().send(sms_user, "042917", MfaMethod.SMS)

        assert "042917" not in caplog.text
        assert "0000" in caplog.text

    def test_sms_without_phone(self):
        user = User(user_id="u1", email="ana@example.com")
        with pytest.raises(DeliveryError):
            LoggingCodeDelivery().send(user, "042917", MfaMethod.SMS)


class TestAwsCodeDelivery:
    """SNS and SES delivery with mocked clients."""

    @pytest.fixture
    def channel(self):
        return AwsCodeDelivery(
            sender="no-reply@example.com", sns_client=MagicMock(), ses_client=MagicMock()
        )

    def test_sms_goes_through_sns(self, channel, sms_user):
        channel.send(sms_user, "042917", MfaMethod.SMS)

        kwargs = channel.sns.publish.call_args[1]
        assert kwargs["PhoneNumber"] == "+5511999990000"
        assert "042917" in kwargs["Message"]
        assert not channel.ses.send_email.called

    def test_email_goes_through_ses(self, channel, sms_user):
        channel.send(sms_user, "042917", MfaMethod.EMAIL)

        kwargs = channel.ses.send_email.call_args[1]
        assert kwargs["Source"] == "no-reply@example.com"
        assert kwargs["Destination"] == {"ToAddresses": ["ana@example.com"]}
        assert "042917" in kwargs["Message"]["Body"]["Text"]["Data"]

    def test_provider_failure_raises_delivery_error(self, channel, sms_user):
        channel.sns.publish.side_effect = client_error("Publish")

        with pytest.raises(DeliveryError) as exc_info:
            channel.send(sms_user, "042917", MfaMethod.SMS)
        assert exc_info.value.details["channel"] == "sms"


class TestAlertDispatchers:
    """Security alerts."""

    def test_logging_dispatcher(self, caplog):
        with caplog.at_level(logging.WARNING):
            LoggingAlertDispatcher().send_alert("u1", "LoginAnomaly", "High", "title", "message", True)
        assert "LoginAnomaly" in caplog.text

    def test_sns_publishes_json_payload(self):
        sns = MagicMock()
        dispatcher = SnsAlertDispatcher("arn:aws:sns:us-east-1:123456789012:alerts", sns_client=sns)

        dispatcher.send_alert("u1", "LoginAnomaly", "Critical", "Suspicious login", "details", True)

        kwargs = sns.publish.call_args[1]
        assert kwargs["TopicArn"].endswith(":alerts")
        payload = json.loads(kwargs["Message"])
        assert payload["severity"] == "Critical"
        assert payload["requires_action"] is True

    def test_sns_failure(self):
        sns = MagicMock()
        sns.publish.side_effect = client_error("Publish")
        dispatcher = SnsAlertDispatcher("arn:aws:sns:us-east-1:123456789012:alerts", sns_client=sns)

        with pytest.raises(AlertDispatchError):
            dispatcher.send_alert(None, "LoginAnomaly", "High", "t", "m", False)
