"""API Schemas - Request/Response models for the API Gateway."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from adaptive_auth.data.schemas import RiskAssessmentResult
from adaptive_auth.mfa.schemas import SendCodeResponse


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class ValidateSessionRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Session token")


class RevokeSessionRequest(BaseModel):
    token: str = Field(..., min_length=1)
    reason: str = Field(default="User logout", max_length=200)


class RevokeOtherSessionsRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    except_token: Optional[str] = Field(default=None, description="Session to keep")


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class EvaluateLoginResponse(BaseModel):
    """Outcome of evaluating one login attempt."""
    decision: Literal["allow", "challenge", "step_up", "block"] = Field(
        ..., description="What the caller should do next"
    )
    assessment: RiskAssessmentResult
    mfa: Optional[SendCodeResponse] = Field(
        default=None, description="Code dispatch result for challenge/step_up"
    )
    access_token: Optional[str] = Field(
        default=None, description="Session token when the login is allowed outright"
    )


class SessionValidationResponse(BaseModel):
    is_valid: bool
    reason: Optional[str] = None
    user_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None


class RevokeSessionResponse(BaseModel):
    revoked: bool


class RevokeOtherSessionsResponse(BaseModel):
    revoked_count: int


class SuspiciousActivityResponse(BaseModel):
    user_id: str
    suspicious: bool


class CleanupResponse(BaseModel):
    otp_sessions_deleted: int
    sessions_expired: int
    rate_limits_purged: int = 0


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    request_id: Optional[str] = Field(default=None, description="Request ID for tracing")
