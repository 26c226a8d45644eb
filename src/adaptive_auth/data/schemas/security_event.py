"""SecurityEvent schema."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from adaptive_auth.core.types import SecurityEventType


class SecurityEvent(BaseModel):
    """Informational security event kept for review."""
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    event_type: SecurityEventType
    severity: str = Field(..., description="Critical, High, Medium, Low or Minimal")
    description: str
    ip_address: str = ""
    user_agent: str = ""
    location: str = ""
    is_successful: bool = False
    created_at: datetime
