"""UserSession schema - an issued session token and its lifecycle."""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from adaptive_auth.common.constants import SessionConstants
from adaptive_auth.core.types import SessionState


class UserSession(BaseModel):
    """A long-lived authenticated session.

    Active until absolute expiry, inactivity timeout or explicit
    revocation. All three end states are terminal.
    """
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    token: str = Field(..., description="Opaque URL-safe session token")
    ip_address: str
    user_agent: str = ""
    device_fingerprint: Optional[str] = None
    location: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime
    inactivity_timeout_minutes: int = Field(
        default=SessionConstants.DEFAULT_INACTIVITY_MINUTES, gt=0
    )
    is_active: bool = True
    is_revoked: bool = False
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None
    is_trusted_device: bool = False

    def is_past_absolute_expiry(self, now: datetime) -> bool:
        return now > self.expires_at

    def is_past_inactivity(self, now: datetime) -> bool:
        return now - self.last_activity_at > timedelta(minutes=self.inactivity_timeout_minutes)

    def revoke(self, reason: str, at: datetime) -> None:
        self.is_active = False
        self.is_revoked = True
        self.revoked_at = at
        self.revoked_reason = reason

    @property
    def state(self) -> SessionState:
        """Persisted state. Pending expiry is applied by the manager."""
        if self.is_active:
            return SessionState.ACTIVE
        if self.revoked_reason == SessionConstants.REASON_EXPIRED:
            return SessionState.EXPIRED_ABSOLUTE
        if self.revoked_reason == SessionConstants.REASON_INACTIVITY:
            return SessionState.EXPIRED_INACTIVITY
        return SessionState.REVOKED
