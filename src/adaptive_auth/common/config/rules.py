"""Authentication rules - thresholds and limits loaded from YAML.

This is the in-memory representation of config/auth_rules.yaml.
Every field carries the production default, so `AuthRules()` is a
complete rule set and the YAML file only needs to list overrides.
"""

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field

from adaptive_auth.common.constants import (
    BaselineConstants,
    MfaConstants,
    RateLimitConstants,
    RiskConstants,
    SessionConstants,
)
from adaptive_auth.common.exceptions import ConfigurationError


class AuthRules(BaseModel):
    """Parsed authentication rules."""

    class Metadata(BaseModel):
        version: str = "1.0.0"
        description: str = "Default adaptive authentication rules"

    class RiskRules(BaseModel):
        anomaly_threshold: int = Field(default=RiskConstants.ANOMALY_THRESHOLD, ge=0, le=100)
        new_user_score: int = RiskConstants.NEW_USER_SCORE
        new_country_score: int = RiskConstants.NEW_COUNTRY_SCORE
        late_night_extra_score: int = RiskConstants.LATE_NIGHT_EXTRA_SCORE
        late_night_first_hour: int = Field(default=RiskConstants.LATE_NIGHT_FIRST_HOUR, ge=0, le=23)
        late_night_last_hour: int = Field(default=RiskConstants.LATE_NIGHT_LAST_HOUR, ge=0, le=23)
        velocity_window_minutes: int = Field(default=RiskConstants.VELOCITY_WINDOW_MINUTES, gt=0)
        high_velocity_count: int = RiskConstants.HIGH_VELOCITY_COUNT
        high_velocity_score: int = RiskConstants.HIGH_VELOCITY_SCORE
        moderate_velocity_count: int = RiskConstants.MODERATE_VELOCITY_COUNT
        moderate_velocity_score: int = RiskConstants.MODERATE_VELOCITY_SCORE
        failure_window_minutes: int = Field(default=RiskConstants.FAILURE_WINDOW_MINUTES, gt=0)
        brute_force_count: int = RiskConstants.BRUTE_FORCE_COUNT
        brute_force_score: int = RiskConstants.BRUTE_FORCE_SCORE
        multiple_failures_count: int = RiskConstants.MULTIPLE_FAILURES_COUNT
        multiple_failures_score: int = RiskConstants.MULTIPLE_FAILURES_SCORE
        block_threshold: int = Field(default=RiskConstants.BLOCK_THRESHOLD, ge=0, le=100)
        step_up_threshold: int = Field(default=RiskConstants.STEP_UP_THRESHOLD, ge=0, le=100)
        challenge_threshold: int = Field(default=RiskConstants.CHALLENGE_THRESHOLD, ge=0, le=100)
        alert_min_severity: int = Field(default=RiskConstants.ALERT_MIN_SEVERITY, ge=1, le=5)
        requires_action_min_severity: int = Field(
            default=RiskConstants.REQUIRES_ACTION_MIN_SEVERITY, ge=1, le=5
        )

    class BaselineRules(BaseModel):
        max_ips: int = Field(default=BaselineConstants.MAX_IPS, gt=0)
        max_locations: int = Field(default=BaselineConstants.MAX_LOCATIONS, gt=0)
        max_devices: int = Field(default=BaselineConstants.MAX_DEVICES, gt=0)
        max_hours: int = Field(default=BaselineConstants.MAX_HOURS, gt=0, le=24)
        location_risk_threshold: int = Field(default=BaselineConstants.LOCATION_RISK_THRESHOLD, ge=0, le=100)
        time_risk_threshold: int = Field(default=BaselineConstants.TIME_RISK_THRESHOLD, ge=0, le=100)
        device_risk_threshold: int = Field(default=BaselineConstants.DEVICE_RISK_THRESHOLD, ge=0, le=100)

    class MfaRules(BaseModel):
        code_length: int = Field(default=MfaConstants.CODE_LENGTH, ge=4, le=10)
        code_validity_minutes: int = Field(default=MfaConstants.CODE_VALIDITY_MINUTES, gt=0)
        max_attempts: int = Field(default=MfaConstants.MAX_ATTEMPTS, gt=0)
        resend_cooldown_minutes: int = Field(default=MfaConstants.RESEND_COOLDOWN_MINUTES, ge=0)
        max_requests: int = Field(default=MfaConstants.MAX_REQUESTS, gt=0)
        max_verifications: int = Field(default=MfaConstants.MAX_VERIFICATIONS, gt=0)
        max_resends: int = Field(default=MfaConstants.MAX_RESENDS, gt=0)

    class SessionRules(BaseModel):
        default_timeout_hours: int = Field(default=SessionConstants.DEFAULT_TIMEOUT_HOURS, gt=0)
        default_inactivity_minutes: int = Field(default=SessionConstants.DEFAULT_INACTIVITY_MINUTES, gt=0)
        suspicious_max_locations: int = SessionConstants.SUSPICIOUS_MAX_LOCATIONS
        suspicious_max_devices: int = SessionConstants.SUSPICIOUS_MAX_DEVICES
        suspicious_max_recent_ips: int = SessionConstants.SUSPICIOUS_MAX_RECENT_IPS
        suspicious_window_minutes: int = Field(default=SessionConstants.SUSPICIOUS_WINDOW_MINUTES, gt=0)

    class RateLimitRules(BaseModel):
        window_minutes: int = Field(default=RateLimitConstants.WINDOW_MINUTES, gt=0)
        block_duration_minutes: int = Field(default=RateLimitConstants.BLOCK_DURATION_MINUTES, gt=0)
        default_max_attempts: int = Field(default=RateLimitConstants.DEFAULT_MAX_ATTEMPTS, gt=0)

    metadata: Metadata = Field(default_factory=Metadata)
    risk: RiskRules = Field(default_factory=RiskRules)
    baseline: BaselineRules = Field(default_factory=BaselineRules)
    mfa: MfaRules = Field(default_factory=MfaRules)
    session: SessionRules = Field(default_factory=SessionRules)
    rate_limit: RateLimitRules = Field(default_factory=RateLimitRules)

    @property
    def version(self) -> str:
        return self.metadata.version


def load_rules(path: Optional[Union[str, Path]] = None) -> AuthRules:
    """Load and validate rules from a YAML file.

    Args:
        path: Path to auth_rules.yaml. Defaults are returned when None.

    Returns:
        Validated AuthRules

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    if path is None:
        return AuthRules()

    rules_path = Path(path)
    if not rules_path.exists():
        raise ConfigurationError(
            f"Rules file not found: {rules_path}",
            details={"path": str(rules_path)},
        )

    with open(rules_path, "r") as f:
        raw_config = yaml.safe_load(f) or {}

    try:
        return AuthRules.model_validate(raw_config)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid rules file {rules_path}: {e}",
            details={"path": str(rules_path)},
        ) from e
