"""Tagged result types for expected business outcomes.

Rejections such as an expired code or an unknown session are part of
normal operation. They are returned as `AuthFailure` values rather than
raised, so callers branch on `result.ok` and exceptions stay reserved
for storage or delivery failures.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Coarse error taxonomy, mapped to HTTP status by the gateway."""
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    STATE_CONFLICT = "state_conflict"
    AUTHORIZATION = "authorization_error"
    RATE_LIMITED = "rate_limited"
    COOLDOWN_ACTIVE = "cooldown_active"


class FailureReason(str, Enum):
    """Specific rejection reasons."""
    RATE_LIMITED = "rate_limited"
    USER_NOT_FOUND = "user_not_found"
    METHOD_MISMATCH = "method_mismatch"
    UNSUPPORTED_METHOD = "unsupported_method"
    INVALID_SESSION = "invalid_session"
    SESSION_NOT_FOUND = "session_not_found"
    EMAIL_MISMATCH = "email_mismatch"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    BLOCKED = "blocked"
    COOLDOWN_ACTIVE = "cooldown_active"
    INVALID_CODE = "invalid_code"
    ANOMALY_NOT_FOUND = "anomaly_not_found"
    ALREADY_RESOLVED = "already_resolved"

    @property
    def kind(self) -> ErrorKind:
        return _REASON_KINDS[self]


_REASON_KINDS: Dict[FailureReason, ErrorKind] = {
    FailureReason.RATE_LIMITED: ErrorKind.RATE_LIMITED,
    FailureReason.USER_NOT_FOUND: ErrorKind.NOT_FOUND,
    FailureReason.METHOD_MISMATCH: ErrorKind.VALIDATION,
    FailureReason.UNSUPPORTED_METHOD: ErrorKind.VALIDATION,
    FailureReason.INVALID_SESSION: ErrorKind.VALIDATION,
    FailureReason.SESSION_NOT_FOUND: ErrorKind.NOT_FOUND,
    FailureReason.EMAIL_MISMATCH: ErrorKind.AUTHORIZATION,
    FailureReason.ALREADY_USED: ErrorKind.STATE_CONFLICT,
    FailureReason.EXPIRED: ErrorKind.STATE_CONFLICT,
    FailureReason.BLOCKED: ErrorKind.STATE_CONFLICT,
    FailureReason.COOLDOWN_ACTIVE: ErrorKind.COOLDOWN_ACTIVE,
    FailureReason.INVALID_CODE: ErrorKind.AUTHORIZATION,
    FailureReason.ANOMALY_NOT_FOUND: ErrorKind.NOT_FOUND,
    FailureReason.ALREADY_RESOLVED: ErrorKind.STATE_CONFLICT,
}


class AuthFailure(BaseModel):
    """A typed, expected rejection."""
    kind: ErrorKind = Field(..., description="Coarse error category")
    reason: FailureReason = Field(..., description="Specific rejection reason")
    message: str = Field(..., description="Human-readable message")
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def of(cls, reason: FailureReason, message: str, **details: Any) -> "AuthFailure":
        return cls(kind=reason.kind, reason=reason, message=message, details=details)


T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Either a value or an AuthFailure."""
    value: Optional[T] = None
    error: Optional[AuthFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: FailureReason, message: str, **details: Any) -> "OperationResult[T]":
        return cls(error=AuthFailure.of(reason, message, **details))
