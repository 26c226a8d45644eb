"""Integration tests for adaptive-auth.

End-to-end tests that drive the full login, challenge and session flow
through the authentication service.
"""

import os
from datetime import timedelta
from unittest.mock import patch

from adaptive_auth.api.service import AuthenticationService
from adaptive_auth.common.config.settings import Config
from adaptive_auth.core.types import AnomalyStatus, ResponseAction
from adaptive_auth.integrations.alerts import LoggingAlertDispatcher, SnsAlertDispatcher
from adaptive_auth.integrations.delivery import AwsCodeDelivery, LoggingCodeDelivery
from adaptive_auth.mfa.schemas import VerifyCodeRequest
from adaptive_auth.persistence.memory import InMemoryUnitOfWork


class TestLoginFlow:
    """Full decision flow over the in-memory backend."""

    def test_trusted_then_challenged_login(self, service, make_attempt, delivery, clock, user, alerts):
        # First login establishes the baseline
        first = service.evaluate_login(make_attempt())
        assert first.decision == "allow"
        assert service.sessions.validate_session(first.access_token).is_valid

        # Next day, same context: nothing unusual
        clock.advance(days=1)
        second = service.evaluate_login(make_attempt())
        assert second.assessment.risk_score == 0
        assert second.decision == "allow"

        # Login from a new country is challenged
        clock.advance(minutes=10)
        travel = service.evaluate_login(make_attempt(
            ip_address="198.51.100.20", country="US", region="CA", city="San Francisco"
        ))
        assert travel.assessment.recommended_action == ResponseAction.STEP_UP
        assert travel.access_token is None
        assert travel.mfa.success is True
        assert len(alerts.alerts) == 1

        verified = service.mfa.verify_code(
            VerifyCodeRequest(email=user.email, code=delivery.last_code, session_id=travel.mfa.session_id),
            client_ip="198.51.100.20",
        )
        assert verified.success is True

        # The user signs everything else out
        revoked = service.sessions.revoke_all_other_sessions(user.user_id, except_token=verified.access_token)
        assert revoked == 2
        assert service.sessions.validate_session(first.access_token).is_valid is False
        assert service.sessions.validate_session(verified.access_token).is_valid is True

        # The analyst closes the anomaly
        pending = service.recorder.list_unresolved()
        assert [a.anomaly_id for a in pending] == [travel.assessment.anomaly_id]
        assert service.recorder.resolve(pending[0].anomaly_id, "analyst_1", "Travel confirmed").ok
        stats = service.recorder.statistics(clock() - timedelta(days=2), clock())
        assert stats.total_anomalies == 1
        assert stats.resolved_anomalies == 1
        assert service.uow.anomalies.get(pending[0].anomaly_id).status == AnomalyStatus.RESOLVED

        # Known location is now part of the baseline
        baseline = service.uow.baselines.get(user.user_id)
        assert "US,CA,San Francisco" in baseline.recent_locations
        assert baseline.total_successful_logins == 3

    def test_brute_force_is_blocked_without_challenge(self, service, make_attempt, delivery):
        results = [
            service.evaluate_login(make_attempt(user_id=None, email="target@example.com", is_successful=False))
            for _ in range(6)
        ]

        assert results[-1].decision == "block"
        assert delivery.sent == []

    def test_maintenance_sweeps_expired_state(self, service, make_attempt, seed_baseline, clock):
        seed_baseline()
        service.evaluate_login(make_attempt())
        clock.advance(minutes=6)
        challenged = service.evaluate_login(make_attempt(device_fingerprint="fp_new"))
        assert challenged.decision == "step_up"
        clock.advance(hours=9)

        result = service.run_maintenance()

        assert result.otp_sessions_deleted == 1
        assert result.sessions_expired == 1
        assert result.rate_limits_purged == 1


class TestServiceFromConfig:
    """Wiring from environment settings."""

    def test_development_wiring(self):
        with patch.dict(os.environ, {}, clear=True):
            service = AuthenticationService.from_config(Config())

        assert isinstance(service.uow, InMemoryUnitOfWork)
        assert isinstance(service.mfa.delivery, LoggingCodeDelivery)
        assert isinstance(service.recorder.alert_dispatcher, LoggingAlertDispatcher)
        assert service.rules.version == "1.0.0"
        assert service.is_ready() is True

    def test_aws_wiring(self):
        env = {
            "AUTH_DELIVERY_BACKEND": "aws",
            "AUTH_SES_SENDER": "no-reply@example.com",
            "AUTH_ALERT_TOPIC_ARN": "arn:aws:sns:us-east-1:123456789012:alerts",
        }
        with patch.dict(os.environ, env, clear=True), patch("boto3.client"):
            service = AuthenticationService.from_config(Config())

        assert isinstance(service.mfa.delivery, AwsCodeDelivery)
        assert isinstance(service.recorder.alert_dispatcher, SnsAlertDispatcher)
