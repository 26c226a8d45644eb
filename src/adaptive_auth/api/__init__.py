"""API layer - FastAPI gateway and service facade."""

from adaptive_auth.api.service import AuthenticationService

__all__ = ["AuthenticationService"]
