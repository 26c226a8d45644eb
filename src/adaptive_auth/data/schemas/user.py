"""User schema - the fields the authentication core needs."""

import uuid
from typing import Optional

from pydantic import BaseModel, Field

from adaptive_auth.core.types import MfaMethod


class User(BaseModel):
    """User account as seen by authentication."""
    user_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    email: str = Field(..., min_length=3, description="Login email, stored lower-cased")
    full_name: str = Field(default="")
    phone: Optional[str] = Field(default=None, description="E.164 phone for SMS codes")
    mfa_option: MfaMethod = Field(default=MfaMethod.EMAIL, description="Preferred code channel")
    is_active: bool = True

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_id": "3f6c1d1e-0d59-4b55-9a0b-6f6d0c1b2a10",
                "email": "ana@example.com",
                "full_name": "Ana Souza",
                "phone": "+5511999990000",
                "mfa_option": "sms",
                "is_active": True,
            }
        }
    }
