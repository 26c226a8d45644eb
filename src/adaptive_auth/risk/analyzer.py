"""Login Risk Analyzer - scores login attempts against a user's baseline.

Scoring is additive. Every check that fires contributes points and a
reason string; the sum is clamped to [0, 100] before classification.
First-time users (no baseline) get a flat new-user score and skip all
baseline-dependent checks. The failure-pattern check depends only on
the source IP and always runs for failed attempts.

Writes for one attempt (scored attempt, baseline update, anomaly
record) share a single transaction. Alerts go out after commit.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from adaptive_auth.anomaly.recorder import AnomalyRecorder
from adaptive_auth.common.config.rules import AuthRules
from adaptive_auth.common.constants import RiskConstants
from adaptive_auth.common.exceptions import PersistenceError
from adaptive_auth.core.clock import Clock, utcnow
from adaptive_auth.core.types import ResponseAction, RiskFactor, Severity
from adaptive_auth.data.schemas import (
    AnomalyRecord,
    LoginAttempt,
    LoginAttemptData,
    RiskAssessmentResult,
    UserBehaviorBaseline,
)
from adaptive_auth.persistence.base import UnitOfWork

logger = logging.getLogger(__name__)

SEVERITY_BUCKETS = (
    (90, Severity.CRITICAL),
    (70, Severity.HIGH),
    (50, Severity.MEDIUM),
    (30, Severity.LOW),
)

RECOMMENDATIONS = {
    RiskFactor.NEW_COUNTRY.value: "Consider requiring additional verification for international logins",
    RiskFactor.NEW_DEVICE.value: "Implement device registration and trusted device management",
    RiskFactor.BRUTE_FORCE_PATTERN.value: "Consider implementing progressive delay or account lockout",
}
MONITORING_RECOMMENDATION = "Enable additional monitoring for this user account"
DEFAULT_RECOMMENDATION = "Monitor user activity closely"


@dataclass
class ScoreCard:
    """Running score and the reasons behind it."""
    score: int = 0
    reasons: List[str] = field(default_factory=list)

    def add(self, points: int, reason: RiskFactor) -> None:
        self.score += points
        self.reasons.append(reason.value)

    @property
    def clamped(self) -> int:
        return max(RiskConstants.SCORE_MIN, min(RiskConstants.SCORE_MAX, self.score))


def classify_severity(score: int) -> int:
    for threshold, severity in SEVERITY_BUCKETS:
        if score >= threshold:
            return int(severity)
    return int(Severity.MINIMAL)


class LoginRiskAnalyzer:
    """Scores login attempts, updates baselines and records anomalies."""

    def __init__(
        self,
        uow: UnitOfWork,
        recorder: AnomalyRecorder,
        rules: Optional[AuthRules] = None,
        clock: Clock = utcnow,
    ):
        """Initialize the analyzer.

        Args:
            uow: Unit of work for attempts, baselines and anomalies
            recorder: Receives anomalous assessments
            rules: Scoring rules, defaults when omitted
            clock: Current UTC time provider
        """
        rules = rules or AuthRules()
        self.uow = uow
        self.recorder = recorder
        self.risk_rules = rules.risk
        self.baseline_rules = rules.baseline
        self._clock = clock

    # ========== PUBLIC API ==========

    def analyze(self, data: LoginAttemptData) -> RiskAssessmentResult:
        """Score one login attempt and apply its side effects.

        Args:
            data: Attempt as observed at the edge

        Returns:
            RiskAssessmentResult for the attempt

        Raises:
            PersistenceError: If storage fails; nothing is written
        """
        now = self._clock()
        anomaly: Optional[AnomalyRecord] = None

        try:
            with self.uow.transaction():
                baseline = self.uow.baselines.get(data.user_id) if data.user_id else None
                card = self.score(data, baseline, now)
                result = self._assess(card)

                attempt = LoginAttempt(
                    **data.model_dump(),
                    attempted_at=now,
                    risk_score=result.risk_score,
                    is_anomalous=result.is_anomalous,
                    anomaly_reasons=result.reasons,
                    response_action=result.recommended_action,
                )
                self.uow.login_attempts.add(attempt)
                result.login_attempt_id = attempt.attempt_id

                if data.user_id:
                    self._update_baseline(baseline, data, now)

                if result.is_anomalous:
                    anomaly = self.recorder.record(result, attempt)
                    result.anomaly_id = anomaly.anomaly_id
        except PersistenceError as e:
            logger.error(f"Risk analysis failed for {data.email}: {e.message}", exc_info=True)
            raise

        if anomaly is not None:
            self.recorder.dispatch_alert(anomaly)

        log = logger.warning if result.is_anomalous else logger.debug
        log(
            f"Login risk for user {data.user_id}: score={result.risk_score}, "
            f"action={result.recommended_action.value}, reasons={result.reasons}"
        )
        return result

    def score(
        self,
        data: LoginAttemptData,
        baseline: Optional[UserBehaviorBaseline],
        now: datetime,
    ) -> ScoreCard:
        """Compute the raw (unclamped) score for an attempt.

        Counts of previous attempts are read from storage; the current
        attempt is not yet persisted and is counted on top.
        """
        card = ScoreCard()

        if baseline is None:
            card.add(self.risk_rules.new_user_score, RiskFactor.NEW_USER)
        else:
            self._check_location(card, data, baseline)
            self._check_time(card, baseline, now)
            self._check_device(card, data, baseline)
            self._check_velocity(card, data, now)

        if not data.is_successful:
            self._check_failures(card, data, now)

        return card

    def determine_action(self, score: int, reasons: List[str]) -> ResponseAction:
        rules = self.risk_rules
        if score >= rules.block_threshold or RiskFactor.BRUTE_FORCE_PATTERN.value in reasons:
            return ResponseAction.BLOCK
        if score >= rules.step_up_threshold:
            return ResponseAction.STEP_UP
        if score >= rules.challenge_threshold:
            return ResponseAction.CHALLENGE
        return ResponseAction.ALLOW

    @staticmethod
    def build_recommendations(reasons: List[str], score: int) -> List[str]:
        recommendations = [RECOMMENDATIONS[r] for r in reasons if r in RECOMMENDATIONS]
        if score >= RiskConstants.STEP_UP_THRESHOLD:
            recommendations.append(MONITORING_RECOMMENDATION)
        return recommendations or [DEFAULT_RECOMMENDATION]

    # ========== CHECKS ==========

    def _check_location(
        self, card: ScoreCard, data: LoginAttemptData, baseline: UserBehaviorBaseline
    ) -> None:
        if not data.country or data.location in baseline.recent_locations:
            return
        card.add(baseline.location_risk_threshold, RiskFactor.UNUSUAL_LOCATION)
        if data.country not in baseline.known_countries:
            card.add(self.risk_rules.new_country_score, RiskFactor.NEW_COUNTRY)

    def _check_time(self, card: ScoreCard, baseline: UserBehaviorBaseline, now: datetime) -> None:
        if not baseline.typical_hours or now.hour in baseline.typical_hours:
            return
        rules = self.risk_rules
        if rules.late_night_first_hour <= now.hour <= rules.late_night_last_hour:
            card.add(
                baseline.time_risk_threshold + rules.late_night_extra_score,
                RiskFactor.UNUSUAL_TIME_LATE_NIGHT,
            )
        else:
            card.add(baseline.time_risk_threshold, RiskFactor.UNUSUAL_TIME)

    def _check_device(
        self, card: ScoreCard, data: LoginAttemptData, baseline: UserBehaviorBaseline
    ) -> None:
        if data.device_fingerprint and data.device_fingerprint not in baseline.known_devices:
            card.add(baseline.device_risk_threshold, RiskFactor.NEW_DEVICE)

    def _check_velocity(self, card: ScoreCard, data: LoginAttemptData, now: datetime) -> None:
        rules = self.risk_rules
        since = now - timedelta(minutes=rules.velocity_window_minutes)
        count = self.uow.login_attempts.count_by_user_since(data.user_id, since) + 1
        if count > rules.high_velocity_count:
            card.add(rules.high_velocity_score, RiskFactor.HIGH_VELOCITY)
        elif count > rules.moderate_velocity_count:
            card.add(rules.moderate_velocity_score, RiskFactor.MODERATE_VELOCITY)

    def _check_failures(self, card: ScoreCard, data: LoginAttemptData, now: datetime) -> None:
        rules = self.risk_rules
        since = now - timedelta(minutes=rules.failure_window_minutes)
        count = self.uow.login_attempts.count_failed_by_ip_since(data.ip_address, since) + 1
        if count > rules.brute_force_count:
            card.add(rules.brute_force_score, RiskFactor.BRUTE_FORCE_PATTERN)
        elif count > rules.multiple_failures_count:
            card.add(rules.multiple_failures_score, RiskFactor.MULTIPLE_FAILURES)

    # ========== HELPERS ==========

    def _assess(self, card: ScoreCard) -> RiskAssessmentResult:
        score = card.clamped
        return RiskAssessmentResult(
            is_anomalous=score >= self.risk_rules.anomaly_threshold,
            risk_score=score,
            reasons=list(card.reasons),
            severity=classify_severity(score),
            recommended_action=self.determine_action(score, card.reasons),
            recommendations=self.build_recommendations(card.reasons, score),
        )

    def _update_baseline(
        self,
        baseline: Optional[UserBehaviorBaseline],
        data: LoginAttemptData,
        now: datetime,
    ) -> None:
        rules = self.baseline_rules
        if baseline is None:
            baseline = UserBehaviorBaseline(
                user_id=data.user_id,
                location_risk_threshold=rules.location_risk_threshold,
                time_risk_threshold=rules.time_risk_threshold,
                device_risk_threshold=rules.device_risk_threshold,
                first_login_at=now,
                last_login_at=now,
                last_updated_at=now,
            )
            logger.info(f"Created behavior baseline for user {data.user_id}")

        baseline.observe(
            ip_address=data.ip_address,
            location=data.location if data.country else None,
            device_fingerprint=data.device_fingerprint,
            at=now,
            is_successful=data.is_successful,
            max_ips=rules.max_ips,
            max_locations=rules.max_locations,
            max_devices=rules.max_devices,
            max_hours=rules.max_hours,
        )
        self.uow.baselines.save(baseline)
