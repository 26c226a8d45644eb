"""User session management."""

from adaptive_auth.sessions.manager import SessionManager, SessionValidation
from adaptive_auth.sessions.tokens import generate_session_token

__all__ = ["SessionManager", "SessionValidation", "generate_session_token"]
