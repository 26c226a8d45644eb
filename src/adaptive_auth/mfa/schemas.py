"""MFA request and response schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from adaptive_auth.core.results import AuthFailure


class SendCodeRequest(BaseModel):
    """Request a one-time code for a user."""
    email: str = Field(..., min_length=3, description="Account email")
    method: str = Field(..., description="Delivery channel: sms or email")

    model_config = {
        "json_schema_extra": {
            "example": {"email": "ana@example.com", "method": "sms"}
        }
    }


class SendCodeResponse(BaseModel):
    """Outcome of sending or resending a code."""
    success: bool
    message: str
    session_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    remaining_attempts: int = 0
    can_resend: bool = False
    next_resend_at: Optional[datetime] = None
    error: Optional[AuthFailure] = None


class VerifyCodeRequest(BaseModel):
    """Verify a one-time code against its session."""
    email: str = Field(..., min_length=3)
    code: str = Field(..., pattern=r"^\d{4,10}$", description="Numeric one-time code")
    session_id: str = Field(..., description="Session id returned by send")

    model_config = {
        "json_schema_extra": {
            "example": {
                "email": "ana@example.com",
                "code": "042917",
                "session_id": "0d0f5c9e-5d53-4f0e-8a53-1f3e9b0a2c11",
            }
        }
    }


class VerifyCodeResponse(BaseModel):
    """Outcome of a verification attempt."""
    success: bool
    message: str
    access_token: Optional[str] = None
    remaining_attempts: int = 0
    is_locked: bool = False
    locked_until: Optional[datetime] = None
    error: Optional[AuthFailure] = None


class ResendCodeRequest(BaseModel):
    session_id: str
