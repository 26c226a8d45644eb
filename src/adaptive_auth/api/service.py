"""Authentication Service - orchestrates risk analysis, MFA and sessions.

This service wires the components together and provides a clean
interface for the API layer. `from_config` builds the production
wiring from environment settings and the YAML rules file.
"""

import logging
from typing import Optional

from adaptive_auth.anomaly.recorder import AnomalyRecorder
from adaptive_auth.api.schemas import CleanupResponse, EvaluateLoginResponse
from adaptive_auth.common.config.rules import AuthRules, load_rules
from adaptive_auth.common.config.settings import Config, DeliveryBackend
from adaptive_auth.common.constants import MfaConstants
from adaptive_auth.core.clock import Clock, utcnow
from adaptive_auth.core.types import ResponseAction
from adaptive_auth.data.schemas import LoginAttemptData
from adaptive_auth.integrations.alerts import (
    AlertDispatcher,
    LoggingAlertDispatcher,
    SnsAlertDispatcher,
)
from adaptive_auth.integrations.delivery import (
    AwsCodeDelivery,
    CodeDeliveryChannel,
    LoggingCodeDelivery,
)
from adaptive_auth.integrations.rate_limiter import InMemoryRateLimiter, RateLimiter
from adaptive_auth.mfa.codes import CodeHasher, OtpCodeGenerator
from adaptive_auth.mfa.manager import MfaCodeManager
from adaptive_auth.mfa.schemas import SendCodeRequest
from adaptive_auth.persistence import create_unit_of_work
from adaptive_auth.persistence.base import UnitOfWork
from adaptive_auth.risk.analyzer import LoginRiskAnalyzer
from adaptive_auth.sessions.manager import SessionManager

logger = logging.getLogger(__name__)

DECISIONS = {
    ResponseAction.ALLOW: "allow",
    ResponseAction.CHALLENGE: "challenge",
    ResponseAction.STEP_UP: "step_up",
    ResponseAction.BLOCK: "block",
}


class AuthenticationService:
    """Facade over the authentication core.

    Components are exposed as attributes so the gateway can call the
    MFA and session managers directly.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        analyzer: LoginRiskAnalyzer,
        recorder: AnomalyRecorder,
        mfa: MfaCodeManager,
        sessions: SessionManager,
        rules: Optional[AuthRules] = None,
    ):
        self.uow = uow
        self.analyzer = analyzer
        self.recorder = recorder
        self.mfa = mfa
        self.sessions = sessions
        self.rules = rules or AuthRules()

    @classmethod
    def build(
        cls,
        uow: UnitOfWork,
        hasher: CodeHasher,
        delivery: Optional[CodeDeliveryChannel] = None,
        alerts: Optional[AlertDispatcher] = None,
        rate_limiter: Optional[RateLimiter] = None,
        generator: Optional[OtpCodeGenerator] = None,
        rules: Optional[AuthRules] = None,
        clock: Clock = utcnow,
    ) -> "AuthenticationService":
        """Wire all components around one unit of work."""
        rules = rules or AuthRules()
        rate_limiter = rate_limiter or InMemoryRateLimiter(
            limits={
                MfaConstants.REQUEST_ACTION: rules.mfa.max_requests,
                MfaConstants.VERIFY_ACTION: rules.mfa.max_verifications,
                MfaConstants.RESEND_ACTION: rules.mfa.max_resends,
            },
            window_minutes=rules.rate_limit.window_minutes,
            block_duration_minutes=rules.rate_limit.block_duration_minutes,
            default_max_attempts=rules.rate_limit.default_max_attempts,
            clock=clock,
        )
        recorder = AnomalyRecorder(uow, alerts or LoggingAlertDispatcher(), rules, clock)
        analyzer = LoginRiskAnalyzer(uow, recorder, rules, clock)
        sessions = SessionManager(uow, rules, clock)
        mfa = MfaCodeManager(
            uow=uow,
            rate_limiter=rate_limiter,
            delivery=delivery or LoggingCodeDelivery(),
            session_manager=sessions,
            hasher=hasher,
            generator=generator,
            rules=rules,
            clock=clock,
        )
        return cls(uow, analyzer, recorder, mfa, sessions, rules)

    @classmethod
    def from_config(cls, config: Config) -> "AuthenticationService":
        """Build the service from environment settings."""
        rules_file = config.resolved_rules_file
        rules = load_rules(rules_file) if rules_file.exists() else AuthRules()

        if config.delivery_backend == DeliveryBackend.AWS:
            delivery: CodeDeliveryChannel = AwsCodeDelivery(
                sender=config.ses_sender,
                region=config.aws_region,
                code_validity_minutes=rules.mfa.code_validity_minutes,
            )
        else:
            delivery = LoggingCodeDelivery()

        if config.alert_topic_arn:
            alerts: AlertDispatcher = SnsAlertDispatcher(config.alert_topic_arn, region=config.aws_region)
        else:
            alerts = LoggingAlertDispatcher()

        logger.info(
            f"Building authentication service: storage={config.storage_backend.value}, "
            f"delivery={config.delivery_backend.value}, rules={rules.version}"
        )
        return cls.build(
            uow=create_unit_of_work(config),
            hasher=CodeHasher(config.otp_hash_key),
            delivery=delivery,
            alerts=alerts,
            rules=rules,
        )

    def evaluate_login(self, data: LoginAttemptData) -> EvaluateLoginResponse:
        """Score a login attempt and act on the recommended action.

        Challenge and step-up send a one-time code to the user's
        preferred channel. An allowed successful login gets a session
        token right away. Failed credential checks are only scored.
        """
        assessment = self.analyzer.analyze(data)
        decision = DECISIONS[assessment.recommended_action]
        response = EvaluateLoginResponse(decision=decision, assessment=assessment)

        if not data.is_successful or not data.user_id:
            return response

        if assessment.recommended_action == ResponseAction.ALLOW:
            response.access_token = self.sessions.create_session(
                user_id=data.user_id,
                ip_address=data.ip_address,
                user_agent=data.user_agent,
                device_fingerprint=data.device_fingerprint,
                location=data.location if data.country else None,
            )
        elif assessment.recommended_action in (ResponseAction.CHALLENGE, ResponseAction.STEP_UP):
            user = self.uow.users.get(data.user_id)
            if user is None:
                logger.warning(f"Cannot challenge unknown user {data.user_id}")
                return response
            response.mfa = self.mfa.send_code(
                SendCodeRequest(email=user.email, method=user.mfa_option.value),
                client_ip=data.ip_address,
                user_agent=data.user_agent,
            )
        return response

    def run_maintenance(self) -> CleanupResponse:
        """Periodic sweep of expired OTP sessions, user sessions and rate limit entries."""
        return CleanupResponse(
            otp_sessions_deleted=self.mfa.cleanup_expired(),
            sessions_expired=self.sessions.cleanup_expired_sessions(),
            rate_limits_purged=self.mfa.rate_limiter.purge_expired(),
        )

    def is_ready(self) -> bool:
        return self.uow.health_check()

    def shutdown(self) -> None:
        logger.info("AuthenticationService shutdown complete")
