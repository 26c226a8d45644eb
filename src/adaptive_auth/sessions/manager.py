"""Session Manager - issues, validates, refreshes and revokes session tokens.

Session states:
    Active --(now > expires_at)-----------------> ExpiredAbsolute
    Active --(idle > inactivity timeout)--------> ExpiredInactivity
    Active --(explicit revoke)------------------> Revoked

All end states are terminal. Expiry is evaluated lazily whenever a
session is read, and recorded as a revocation carrying the reason.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, List, Optional

from pydantic import BaseModel

from adaptive_auth.common.config.rules import AuthRules
from adaptive_auth.common.constants import SessionConstants
from adaptive_auth.common.exceptions import PersistenceError
from adaptive_auth.core.clock import Clock, utcnow
from adaptive_auth.core.types import SecurityEventType, SessionState, Severity
from adaptive_auth.data.schemas import SecurityEvent, UserSession
from adaptive_auth.persistence.base import UnitOfWork
from adaptive_auth.sessions.tokens import generate_session_token

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "Session not found"


class SessionValidation(BaseModel):
    """Result of validating a token."""
    is_valid: bool
    session: Optional[UserSession] = None
    reason: Optional[str] = None
    state: Optional[SessionState] = None


class SessionManager:
    """Lifecycle of long-lived user sessions."""

    def __init__(self, uow: UnitOfWork, rules: Optional[AuthRules] = None, clock: Clock = utcnow):
        self.uow = uow
        self.rules = (rules or AuthRules()).session
        self._clock = clock

    @contextmanager
    def _logged(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PersistenceError as e:
            logger.error(f"{operation} failed: {e.message}", exc_info=True)
            raise

    def _expire_if_due(self, session: UserSession, now: datetime) -> bool:
        """Revoke a session whose time is up. Returns True if it expired."""
        if session.is_past_absolute_expiry(now):
            reason = SessionConstants.REASON_EXPIRED
        elif session.is_past_inactivity(now):
            reason = SessionConstants.REASON_INACTIVITY
        else:
            return False
        session.revoke(reason, now)
        self.uow.user_sessions.update(session)
        logger.info(f"Session for user {session.user_id} ended: {reason}")
        return True

    # ========== LIFECYCLE ==========

    def create_session(
        self,
        user_id: str,
        ip_address: str,
        user_agent: str,
        device_fingerprint: Optional[str] = None,
        location: Optional[str] = None,
        inactivity_timeout_minutes: Optional[int] = None,
        is_trusted_device: bool = False,
    ) -> str:
        """Mint and persist a new session.

        Returns:
            The session token
        """
        now = self._clock()
        session = UserSession(
            user_id=user_id,
            token=generate_session_token(now),
            ip_address=ip_address,
            user_agent=user_agent,
            device_fingerprint=device_fingerprint,
            location=location,
            created_at=now,
            expires_at=now + timedelta(hours=self.rules.default_timeout_hours),
            last_activity_at=now,
            inactivity_timeout_minutes=inactivity_timeout_minutes or self.rules.default_inactivity_minutes,
            is_trusted_device=is_trusted_device,
        )
        with self._logged("create_session"):
            self.uow.user_sessions.add(session)
        logger.info(f"Session created for user {user_id} from {ip_address}")
        return session.token

    def validate_session(self, token: str) -> SessionValidation:
        """Check a token, applying any pending expiry."""
        now = self._clock()
        with self._logged("validate_session"):
            session = self.uow.user_sessions.get_by_token(token)
            if session is None:
                return SessionValidation(is_valid=False, reason=SESSION_NOT_FOUND)

            if not session.is_active:
                return SessionValidation(
                    is_valid=False, session=session,
                    reason=session.revoked_reason, state=session.state,
                )

            if self._expire_if_due(session, now):
                return SessionValidation(
                    is_valid=False, session=session,
                    reason=session.revoked_reason, state=session.state,
                )

        return SessionValidation(is_valid=True, session=session, state=SessionState.ACTIVE)

    def update_activity(self, token: str) -> bool:
        """Slide the inactivity window of a still-valid session."""
        now = self._clock()
        with self._logged("update_activity"):
            session = self.uow.user_sessions.get_by_token(token)
            if session is None or not session.is_active:
                return False
            if self._expire_if_due(session, now):
                return False
            session.last_activity_at = now
            self.uow.user_sessions.update(session)
        return True

    def revoke_session(self, token: str, reason: str = SessionConstants.REASON_LOGOUT) -> bool:
        """Revoke a session. Revoking an ended session is a no-op.

        Returns:
            False if the token is unknown
        """
        now = self._clock()
        with self._logged("revoke_session"):
            session = self.uow.user_sessions.get_by_token(token)
            if session is None:
                return False
            if not session.is_active:
                return True
            session.revoke(reason, now)
            self.uow.user_sessions.update(session)
        logger.info(f"Session revoked for user {session.user_id}: {reason}")
        return True

    def revoke_all_other_sessions(
        self,
        user_id: str,
        except_token: Optional[str] = None,
        reason: str = SessionConstants.REASON_REVOKED_BY_USER,
    ) -> int:
        """Revoke every active session of a user except `except_token`.

        Returns:
            Number of sessions revoked
        """
        now = self._clock()
        revoked = 0
        with self._logged("revoke_all_other_sessions"), self.uow.transaction():
            for session in self.uow.user_sessions.list_active_for_user(user_id):
                if except_token is not None and session.token == except_token:
                    continue
                session.revoke(reason, now)
                self.uow.user_sessions.update(session)
                revoked += 1
        logger.info(f"Revoked {revoked} other sessions for user {user_id}")
        return revoked

    def get_active_sessions(self, user_id: str) -> List[UserSession]:
        """Sessions that are active right now, newest first."""
        now = self._clock()
        with self._logged("get_active_sessions"):
            sessions = [
                s for s in self.uow.user_sessions.list_active_for_user(user_id)
                if not self._expire_if_due(s, now)
            ]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    # ========== MONITORING ==========

    def detect_suspicious_activity(self, user_id: str) -> bool:
        """Flag account sharing or takeover across concurrent sessions.

        Suspicious when the active sessions span too many distinct
        locations or devices, or when too many distinct IPs opened a
        session within the trailing window. A positive result is
        recorded as a security event; sessions are left untouched.
        """
        now = self._clock()
        rules = self.rules
        sessions = self.get_active_sessions(user_id)

        locations = {s.location for s in sessions if s.location}
        devices = {s.device_fingerprint for s in sessions if s.device_fingerprint}
        window_start = now - timedelta(minutes=rules.suspicious_window_minutes)
        recent_ips = {s.ip_address for s in sessions if s.created_at >= window_start}

        suspicious = (
            len(locations) > rules.suspicious_max_locations
            or len(devices) > rules.suspicious_max_devices
            or len(recent_ips) > rules.suspicious_max_recent_ips
        )
        if not suspicious:
            return False

        logger.warning(
            f"Suspicious concurrent sessions for user {user_id}: "
            f"{len(locations)} locations, {len(devices)} devices, {len(recent_ips)} recent IPs"
        )
        latest = sessions[0]
        event = SecurityEvent(
            user_id=user_id,
            event_type=SecurityEventType.SUSPICIOUS_ACTIVITY,
            severity=Severity.HIGH.label,
            description=(
                f"Multiple concurrent sessions detected: "
                f"{len(locations)} locations, {len(devices)} devices"
            ),
            ip_address=latest.ip_address,
            user_agent=latest.user_agent,
            location=latest.location or "",
            created_at=now,
        )
        with self._logged("detect_suspicious_activity"):
            self.uow.security_events.add(event)
        return True

    # ========== MAINTENANCE ==========

    def cleanup_expired_sessions(self) -> int:
        """Revoke every active session that is past its expiry.

        Returns:
            Number of sessions ended
        """
        now = self._clock()
        with self._logged("cleanup_expired_sessions"), self.uow.transaction():
            expired = sum(1 for s in self.uow.user_sessions.list_active() if self._expire_if_due(s, now))
        if expired:
            logger.info(f"Cleaned up {expired} expired sessions")
        return expired
