"""Core types and enums."""

from enum import Enum, IntEnum


class ResponseAction(str, Enum):
    """Action recommended for a scored login attempt."""
    ALLOW = "Allow"
    CHALLENGE = "Challenge"
    STEP_UP = "StepUp"
    BLOCK = "Block"


class Severity(IntEnum):
    """Anomaly severity, 1 (minimal) to 5 (critical)."""
    MINIMAL = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4
    CRITICAL = 5

    @property
    def label(self) -> str:
        """Alert-facing name, e.g. 'Critical'."""
        return self.name.capitalize()


class RiskFactor(str, Enum):
    """Reasons emitted by the risk analyzer."""
    NEW_USER = "new_user"
    UNUSUAL_LOCATION = "unusual_location"
    NEW_COUNTRY = "new_country"
    UNUSUAL_TIME = "unusual_time"
    UNUSUAL_TIME_LATE_NIGHT = "unusual_time_late_night"
    NEW_DEVICE = "new_device"
    HIGH_VELOCITY = "high_velocity"
    MODERATE_VELOCITY = "moderate_velocity"
    BRUTE_FORCE_PATTERN = "brute_force_pattern"
    MULTIPLE_FAILURES = "multiple_failures"


class AnomalyType(str, Enum):
    """Dominant category of an anomalous attempt."""
    LOCATION = "Location"
    TIME = "Time"
    DEVICE = "Device"
    VELOCITY = "Velocity"
    GENERAL = "General"


class AnomalyStatus(str, Enum):
    """Resolution state of an anomaly record."""
    PENDING = "Pending"
    RESOLVED = "Resolved"


class MfaMethod(str, Enum):
    """Delivery channel for one-time codes."""
    SMS = "sms"
    EMAIL = "email"


class OtpState(str, Enum):
    """Lifecycle state of a one-time code session."""
    ACTIVE = "active"
    USED = "used"
    BLOCKED = "blocked"
    EXPIRED = "expired"


class SessionState(str, Enum):
    """Lifecycle state of a user session."""
    ACTIVE = "active"
    EXPIRED_ABSOLUTE = "expired_absolute"
    EXPIRED_INACTIVITY = "expired_inactivity"
    REVOKED = "revoked"


class SecurityEventType(str, Enum):
    """Security events persisted for later review."""
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
