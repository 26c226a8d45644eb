"""UserBehaviorBaseline schema - a user's learned login context."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from adaptive_auth.common.constants import BaselineConstants


def push_bounded(items: List[Any], value: Any, cap: int) -> bool:
    """Append `value` if absent, evicting the oldest entries beyond `cap`.

    Returns:
        True if the list changed
    """
    if value in items:
        return False
    items.append(value)
    while len(items) > cap:
        items.pop(0)
    return True


class UserBehaviorBaseline(BaseModel):
    """Rolling per-user baseline.

    Lists are ordered oldest first and bounded by the caps passed to
    `observe`. Locations are `country,region,city` strings.
    """
    user_id: str = Field(..., description="Owning user")
    recent_ips: List[str] = Field(default_factory=list)
    recent_locations: List[str] = Field(default_factory=list)
    known_devices: List[str] = Field(default_factory=list)
    typical_hours: List[int] = Field(default_factory=list)
    typical_days_of_week: List[int] = Field(default_factory=list, description="0 = Monday")
    preferred_time_zone: str = Field(default=BaselineConstants.DEFAULT_TIME_ZONE)

    location_risk_threshold: int = Field(default=BaselineConstants.LOCATION_RISK_THRESHOLD, ge=0, le=100)
    time_risk_threshold: int = Field(default=BaselineConstants.TIME_RISK_THRESHOLD, ge=0, le=100)
    device_risk_threshold: int = Field(default=BaselineConstants.DEVICE_RISK_THRESHOLD, ge=0, le=100)

    first_login_at: datetime
    last_login_at: datetime
    last_updated_at: datetime
    total_successful_logins: int = Field(default=0, ge=0)
    total_failed_logins: int = Field(default=0, ge=0)

    @property
    def known_countries(self) -> List[str]:
        countries = []
        for location in self.recent_locations:
            country = location.split(",", 1)[0]
            if country and country not in countries:
                countries.append(country)
        return countries

    def observe(
        self,
        *,
        ip_address: str,
        location: Optional[str],
        device_fingerprint: Optional[str],
        at: datetime,
        is_successful: bool,
        max_ips: int = BaselineConstants.MAX_IPS,
        max_locations: int = BaselineConstants.MAX_LOCATIONS,
        max_devices: int = BaselineConstants.MAX_DEVICES,
        max_hours: int = BaselineConstants.MAX_HOURS,
    ) -> None:
        """Fold one login attempt into the baseline."""
        push_bounded(self.recent_ips, ip_address, max_ips)
        if location:
            push_bounded(self.recent_locations, location, max_locations)
        if device_fingerprint:
            push_bounded(self.known_devices, device_fingerprint, max_devices)
        push_bounded(self.typical_hours, at.hour, max_hours)
        push_bounded(self.typical_days_of_week, at.weekday(), 7)

        if is_successful:
            self.total_successful_logins += 1
        else:
            self.total_failed_logins += 1
        self.last_login_at = at
        self.last_updated_at = at

    model_config = {
        "validate_assignment": True,
        "json_schema_extra": {
            "example": {
                "user_id": "3f6c1d1e-0d59-4b55-9a0b-6f6d0c1b2a10",
                "recent_ips": ["203.0.113.7"],
                "recent_locations": ["BR,SP,Sao Paulo"],
                "known_devices": ["fp_9a8b7c"],
                "typical_hours": [9, 14],
                "typical_days_of_week": [0, 2],
                "first_login_at": "2026-01-05T09:12:00Z",
                "last_login_at": "2026-01-25T14:30:00Z",
                "last_updated_at": "2026-01-25T14:30:00Z",
            }
        },
    }
