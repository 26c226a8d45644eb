"""AnomalyRecord schema."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from adaptive_auth.core.types import AnomalyStatus, AnomalyType, ResponseAction


class AnomalyRecord(BaseModel):
    """Durable record of one anomalous login attempt.

    Moves Pending -> Resolved exactly once, via `resolve`.
    """
    anomaly_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = Field(default=None, description="Owning user, absent for unknown emails")
    login_attempt_id: str = Field(..., description="Scored attempt that triggered the record")
    anomaly_type: AnomalyType
    severity: int = Field(..., ge=1, le=5)
    risk_score: int = Field(..., ge=0, le=100)
    description: str
    details: str = Field(default="", description="Comma-joined risk reasons")
    response_action: ResponseAction
    status: AnomalyStatus = AnomalyStatus.PENDING
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    detected_at: datetime

    @property
    def is_resolved(self) -> bool:
        return self.status == AnomalyStatus.RESOLVED

    def resolve(self, resolver_id: str, notes: str, at: datetime) -> None:
        self.status = AnomalyStatus.RESOLVED
        self.resolved_by = resolver_id
        self.resolution_notes = notes
        self.resolved_at = at
