"""LoginAttempt schemas - inbound attempt data and the scored record."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from adaptive_auth.core.types import ResponseAction


def location_key(country: Optional[str], region: Optional[str], city: Optional[str]) -> str:
    """Canonical `country,region,city` location string."""
    return f"{country or ''},{region or ''},{city or ''}"


class LoginAttemptData(BaseModel):
    """A login attempt as observed at the edge, before scoring."""
    user_id: Optional[str] = Field(default=None, description="Resolved user, absent for unknown emails")
    email: str = Field(..., min_length=1, description="Email submitted with the attempt")
    ip_address: str = Field(..., min_length=1, description="Client IP address")
    user_agent: str = Field(default="", description="Client user agent")
    country: Optional[str] = Field(default=None, description="Resolved country")
    region: Optional[str] = Field(default=None, description="Resolved region or state")
    city: Optional[str] = Field(default=None, description="Resolved city")
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    device_fingerprint: Optional[str] = Field(default=None, description="Client device fingerprint")
    device_type: Optional[str] = Field(default=None)
    operating_system: Optional[str] = Field(default=None)
    browser: Optional[str] = Field(default=None)
    is_successful: bool = Field(..., description="Whether the primary credential check passed")
    failure_reason: Optional[str] = Field(default=None)

    @property
    def location(self) -> str:
        return location_key(self.country, self.region, self.city)

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_id": "3f6c1d1e-0d59-4b55-9a0b-6f6d0c1b2a10",
                "email": "ana@example.com",
                "ip_address": "203.0.113.7",
                "user_agent": "Mozilla/5.0",
                "country": "BR",
                "region": "SP",
                "city": "Sao Paulo",
                "device_fingerprint": "fp_9a8b7c",
                "is_successful": True,
            }
        }
    }


class LoginAttempt(LoginAttemptData):
    """A scored login attempt. Written once, never updated."""
    attempt_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    attempted_at: datetime = Field(..., description="When the attempt was observed")
    risk_score: int = Field(default=0, ge=0, le=100)
    is_anomalous: bool = Field(default=False)
    anomaly_reasons: List[str] = Field(default_factory=list)
    response_action: ResponseAction = Field(default=ResponseAction.ALLOW)

    model_config = {"frozen": True}
