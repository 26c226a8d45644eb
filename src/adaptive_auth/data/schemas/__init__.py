"""Data schemas - canonical Pydantic definitions."""

from adaptive_auth.data.schemas.user import User
from adaptive_auth.data.schemas.login_attempt import LoginAttempt, LoginAttemptData, location_key
from adaptive_auth.data.schemas.baseline import UserBehaviorBaseline
from adaptive_auth.data.schemas.anomaly import AnomalyRecord
from adaptive_auth.data.schemas.otp_session import OtpSession
from adaptive_auth.data.schemas.user_session import UserSession
from adaptive_auth.data.schemas.security_event import SecurityEvent
from adaptive_auth.data.schemas.risk_assessment import RiskAssessmentResult

__all__ = [
    "User",
    "LoginAttempt",
    "LoginAttemptData",
    "location_key",
    "UserBehaviorBaseline",
    "AnomalyRecord",
    "OtpSession",
    "UserSession",
    "SecurityEvent",
    "RiskAssessmentResult",
]
