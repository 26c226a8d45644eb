"""Custom exceptions for adaptive-auth.

Provides a hierarchy of exceptions for unexpected failures.
Expected business rejections (expired code, unknown session, ...)
are returned as typed results, see `adaptive_auth.core.results`.
"""

from typing import Any, Dict, Optional


class AdaptiveAuthException(Exception):
    """Base exception for all adaptive-auth errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: str = "AUTH_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(AdaptiveAuthException):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIG_ERROR", details=details)


class ValidationError(AdaptiveAuthException):
    """Raised when an input record fails validation."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class PersistenceError(AdaptiveAuthException):
    """Raised when the storage layer fails to read or write."""

    def __init__(
        self,
        message: str,
        operation: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["operation"] = operation
        super().__init__(message, code="PERSISTENCE_ERROR", details=details)


class ConcurrencyConflictError(PersistenceError):
    """Raised when a conditional write loses a race."""

    def __init__(
        self,
        message: str,
        operation: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, operation=operation, details=details)
        self.code = "CONCURRENCY_CONFLICT"


class DeliveryError(AdaptiveAuthException):
    """Raised when a one-time code cannot be delivered."""

    def __init__(
        self,
        message: str,
        channel: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["channel"] = channel
        super().__init__(message, code="DELIVERY_ERROR", details=details)


class AlertDispatchError(AdaptiveAuthException):
    """Raised when a security alert cannot be dispatched."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="ALERT_ERROR", details=details)
