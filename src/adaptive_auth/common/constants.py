"""Centralized constants for adaptive-auth defaults."""


# ===== RISK SCORING =====
class RiskConstants:
    SCORE_MIN = 0
    SCORE_MAX = 100
    ANOMALY_THRESHOLD = 50

    NEW_USER_SCORE = 20
    NEW_COUNTRY_SCORE = 30
    LATE_NIGHT_EXTRA_SCORE = 20
    LATE_NIGHT_FIRST_HOUR = 0
    LATE_NIGHT_LAST_HOUR = 5

    # Velocity (same user, trailing window)
    VELOCITY_WINDOW_MINUTES = 5
    HIGH_VELOCITY_COUNT = 3
    HIGH_VELOCITY_SCORE = 40
    MODERATE_VELOCITY_COUNT = 1
    MODERATE_VELOCITY_SCORE = 20

    # Failures (same IP, trailing window)
    FAILURE_WINDOW_MINUTES = 60
    BRUTE_FORCE_COUNT = 5
    BRUTE_FORCE_SCORE = 60
    MULTIPLE_FAILURES_COUNT = 3
    MULTIPLE_FAILURES_SCORE = 30

    # Response action thresholds
    BLOCK_THRESHOLD = 90
    STEP_UP_THRESHOLD = 70
    CHALLENGE_THRESHOLD = 50

    # Alerting
    ALERT_MIN_SEVERITY = 3
    REQUIRES_ACTION_MIN_SEVERITY = 4


# ===== BEHAVIORAL BASELINE =====
class BaselineConstants:
    MAX_IPS = 10
    MAX_LOCATIONS = 5
    MAX_DEVICES = 5
    MAX_HOURS = 8

    LOCATION_RISK_THRESHOLD = 50
    TIME_RISK_THRESHOLD = 30
    DEVICE_RISK_THRESHOLD = 70

    DEFAULT_TIME_ZONE = "UTC"


# ===== MFA =====
class MfaConstants:
    CODE_LENGTH = 6
    CODE_VALIDITY_MINUTES = 10
    MAX_ATTEMPTS = 3
    RESEND_COOLDOWN_MINUTES = 2

    REQUEST_ACTION = "MFA_REQUEST"
    VERIFY_ACTION = "MFA_VERIFY"
    RESEND_ACTION = "MFA_RESEND"
    MAX_REQUESTS = 5
    MAX_VERIFICATIONS = 10
    MAX_RESENDS = 3


# ===== USER SESSIONS =====
class SessionConstants:
    DEFAULT_TIMEOUT_HOURS = 8
    DEFAULT_INACTIVITY_MINUTES = 30
    TOKEN_RANDOM_BYTES = 32

    SUSPICIOUS_MAX_LOCATIONS = 3
    SUSPICIOUS_MAX_DEVICES = 5
    SUSPICIOUS_MAX_RECENT_IPS = 3
    SUSPICIOUS_WINDOW_MINUTES = 60

    REASON_EXPIRED = "Session expired"
    REASON_INACTIVITY = "Inactivity timeout"
    REASON_LOGOUT = "User logout"
    REASON_REVOKED_BY_USER = "Revoked by another session"


# ===== RATE LIMITING =====
class RateLimitConstants:
    WINDOW_MINUTES = 15
    BLOCK_DURATION_MINUTES = 30
    DEFAULT_MAX_ATTEMPTS = 5


# ===== DATA & QUERY LIMITS =====
class DataConstants:
    DEFAULT_QUERY_LIMIT = 100
    TOP_RISKY_USERS = 10
    TRANSACT_MAX_ITEMS = 100
