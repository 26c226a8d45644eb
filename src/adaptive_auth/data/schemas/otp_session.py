"""OtpSession schema - one issued one-time code."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from adaptive_auth.common.constants import MfaConstants
from adaptive_auth.core.types import MfaMethod, OtpState


class OtpSession(BaseModel):
    """An issued one-time code, stored as a keyed hash only.

    Lifecycle: Active -> Used | Blocked | Expired. Expiry is evaluated
    lazily against the caller's clock.
    """
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    email: str
    code_hash: str = Field(..., description="Hex HMAC of session_id:code")
    method: MfaMethod
    created_at: datetime
    expires_at: datetime
    attempt_count: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=MfaConstants.MAX_ATTEMPTS, gt=0)
    is_used: bool = False
    used_at: Optional[datetime] = None
    is_blocked: bool = False
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now

    def state(self, now: datetime) -> OtpState:
        if self.is_used:
            return OtpState.USED
        if self.is_expired(now):
            return OtpState.EXPIRED
        if self.is_blocked:
            return OtpState.BLOCKED
        return OtpState.ACTIVE

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempt_count)
