"""RiskAssessmentResult schema - output of the login risk analyzer."""

from typing import List, Optional

from pydantic import BaseModel, Field

from adaptive_auth.core.types import ResponseAction


class RiskAssessmentResult(BaseModel):
    """Scored outcome of one login attempt."""
    is_anomalous: bool = Field(..., description="risk_score >= anomaly threshold")
    risk_score: int = Field(..., ge=0, le=100, description="Clamped risk score")
    reasons: List[str] = Field(default_factory=list, description="Risk factors that fired")
    severity: int = Field(..., ge=1, le=5)
    recommended_action: ResponseAction
    recommendations: List[str] = Field(default_factory=list, description="Advisory strings")
    login_attempt_id: Optional[str] = Field(default=None, description="Persisted attempt id")
    anomaly_id: Optional[str] = Field(default=None, description="Anomaly record id, when anomalous")

    model_config = {
        "json_schema_extra": {
            "example": {
                "is_anomalous": True,
                "risk_score": 80,
                "reasons": ["unusual_location", "new_country"],
                "severity": 4,
                "recommended_action": "StepUp",
                "recommendations": [
                    "Consider requiring additional verification for international logins",
                    "Enable additional monitoring for this user account",
                ],
            }
        }
    }
