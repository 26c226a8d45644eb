"""Anomaly Recorder - turns anomalous assessments into durable records.

`record` writes through the caller's unit of work, so it joins the
risk analyzer's transaction. `dispatch_alert` is called after commit
and never raises: alerting is best-effort and cannot undo a record.
"""

import logging
from datetime import datetime
from typing import List, Optional

from adaptive_auth.common.config.rules import AuthRules
from adaptive_auth.common.constants import DataConstants
from adaptive_auth.common.exceptions import AdaptiveAuthException
from adaptive_auth.core.clock import Clock, ensure_utc, utcnow
from adaptive_auth.core.results import FailureReason, OperationResult
from adaptive_auth.core.types import AnomalyType, RiskFactor, Severity
from adaptive_auth.data.schemas import AnomalyRecord, LoginAttempt, RiskAssessmentResult
from adaptive_auth.integrations.alerts import AlertDispatcher
from adaptive_auth.persistence.base import UnitOfWork
from adaptive_auth.anomaly.statistics import AnomalyStatistics, compute_statistics

logger = logging.getLogger(__name__)

ALERT_TYPE = "LoginAnomaly"
ALERT_TITLE = "Suspicious login activity detected"

REASON_PHRASES = {
    RiskFactor.NEW_COUNTRY.value: "Login from a new country",
    RiskFactor.UNUSUAL_LOCATION.value: "Login from an unusual location",
    RiskFactor.UNUSUAL_TIME.value: "Login at an unusual time",
    RiskFactor.UNUSUAL_TIME_LATE_NIGHT.value: "Login during late night hours",
    RiskFactor.NEW_DEVICE.value: "Login from a new device",
    RiskFactor.HIGH_VELOCITY.value: "Multiple rapid login attempts",
    RiskFactor.BRUTE_FORCE_PATTERN.value: "Potential brute force attack pattern",
    RiskFactor.MULTIPLE_FAILURES.value: "Multiple failed login attempts",
}

# Checked in order; first match wins
_TYPE_PRIORITY = [
    (AnomalyType.LOCATION, {RiskFactor.NEW_COUNTRY, RiskFactor.UNUSUAL_LOCATION}),
    (AnomalyType.TIME, {RiskFactor.UNUSUAL_TIME, RiskFactor.UNUSUAL_TIME_LATE_NIGHT}),
    (AnomalyType.DEVICE, {RiskFactor.NEW_DEVICE}),
    (AnomalyType.VELOCITY, {RiskFactor.HIGH_VELOCITY, RiskFactor.BRUTE_FORCE_PATTERN}),
]


def classify_anomaly(reasons: List[str]) -> AnomalyType:
    """Pick the dominant anomaly type for a set of reasons."""
    for anomaly_type, factors in _TYPE_PRIORITY:
        if any(f.value in reasons for f in factors):
            return anomaly_type
    return AnomalyType.GENERAL


def describe_anomaly(reasons: List[str]) -> str:
    phrases = [REASON_PHRASES.get(r, r.replace("_", " ")) for r in reasons]
    return "Anomalous login detected: " + ", ".join(phrases)


class AnomalyRecorder:
    """Persists anomaly records, raises alerts and handles resolution."""

    def __init__(
        self,
        uow: UnitOfWork,
        alert_dispatcher: AlertDispatcher,
        rules: Optional[AuthRules] = None,
        clock: Clock = utcnow,
    ):
        self.uow = uow
        self.alert_dispatcher = alert_dispatcher
        self.rules = (rules or AuthRules()).risk
        self._clock = clock

    def record(self, assessment: RiskAssessmentResult, attempt: LoginAttempt) -> AnomalyRecord:
        """Create the anomaly record for an anomalous attempt."""
        record = AnomalyRecord(
            user_id=attempt.user_id,
            login_attempt_id=attempt.attempt_id,
            anomaly_type=classify_anomaly(assessment.reasons),
            severity=assessment.severity,
            risk_score=assessment.risk_score,
            description=describe_anomaly(assessment.reasons),
            details=", ".join(assessment.reasons),
            response_action=assessment.recommended_action,
            detected_at=attempt.attempted_at,
        )
        self.uow.anomalies.add(record)
        logger.info(
            f"Anomaly recorded for user {record.user_id}: type={record.anomaly_type.value}, "
            f"severity={record.severity}, score={record.risk_score}"
        )
        return record

    def dispatch_alert(self, record: AnomalyRecord) -> bool:
        """Send an alert when severity is high enough.

        Returns:
            True if an alert was sent
        """
        if record.severity < self.rules.alert_min_severity:
            return False

        try:
            self.alert_dispatcher.send_alert(
                user_id=record.user_id,
                alert_type=ALERT_TYPE,
                severity=Severity(record.severity).label,
                title=ALERT_TITLE,
                message=record.description,
                requires_action=record.severity >= self.rules.requires_action_min_severity,
            )
        except AdaptiveAuthException as e:
            logger.error(f"Alert dispatch failed for anomaly {record.anomaly_id}: {e.message}")
            return False
        return True

    def resolve(self, anomaly_id: str, resolver_id: str, notes: str) -> OperationResult[AnomalyRecord]:
        """Move a pending anomaly to Resolved."""
        record = self.uow.anomalies.get(anomaly_id)
        if record is None:
            return OperationResult.failure(
                FailureReason.ANOMALY_NOT_FOUND, "Anomaly not found", anomaly_id=anomaly_id
            )
        if record.is_resolved:
            return OperationResult.failure(
                FailureReason.ALREADY_RESOLVED, "Anomaly already resolved", anomaly_id=anomaly_id
            )

        record.resolve(resolver_id, notes, self._clock())
        self.uow.anomalies.update(record)
        logger.info(f"Anomaly {anomaly_id} resolved by {resolver_id}")
        return OperationResult.success(record)

    def list_unresolved(self, limit: int = DataConstants.DEFAULT_QUERY_LIMIT) -> List[AnomalyRecord]:
        return self.uow.anomalies.list_unresolved(limit)

    def statistics(self, from_date: datetime, to_date: datetime) -> AnomalyStatistics:
        """Aggregate anomalies detected in [from_date, to_date]. Naive bounds are read as UTC."""
        from_date, to_date = ensure_utc(from_date), ensure_utc(to_date)
        records = self.uow.anomalies.list_detected_between(from_date, to_date)
        return compute_statistics(records, from_date, to_date)
