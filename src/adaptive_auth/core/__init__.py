"""Core types, result values and clock helpers."""

from adaptive_auth.core.types import (
    AnomalyStatus,
    AnomalyType,
    MfaMethod,
    OtpState,
    ResponseAction,
    RiskFactor,
    SecurityEventType,
    SessionState,
    Severity,
)
from adaptive_auth.core.results import (
    AuthFailure,
    ErrorKind,
    FailureReason,
    OperationResult,
)
from adaptive_auth.core.clock import Clock, ensure_utc, utcnow

__all__ = [
    "AnomalyStatus",
    "AnomalyType",
    "MfaMethod",
    "OtpState",
    "ResponseAction",
    "RiskFactor",
    "SecurityEventType",
    "SessionState",
    "Severity",
    "AuthFailure",
    "ErrorKind",
    "FailureReason",
    "OperationResult",
    "Clock",
    "ensure_utc",
    "utcnow",
]
