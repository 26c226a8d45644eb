"""Tests for the Session Manager."""

import base64
from datetime import timedelta

import pytest

from adaptive_auth.common.constants import SessionConstants
from adaptive_auth.core.types import SecurityEventType, SessionState
from adaptive_auth.sessions.manager import SESSION_NOT_FOUND, SessionManager
from adaptive_auth.sessions.tokens import generate_session_token


@pytest.fixture
def sessions(uow, rules, clock):
    return SessionManager(uow, rules, clock)


@pytest.fixture
def token(sessions, user):
    return sessions.create_session(user.user_id, "203.0.113.7", "Mozilla/5.0", device_fingerprint="fp_known")


class TestTokens:
    """Token minting."""

    def test_token_is_url_safe_without_padding(self, clock):
        token = generate_session_token(clock())

        assert "=" not in token
        assert "+" not in token and "/" not in token
        raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
        assert raw.startswith(str(int(clock().timestamp())).encode())
        assert len(raw) == len(str(int(clock().timestamp()))) + 32

    def test_tokens_are_unique(self, clock):
        assert generate_session_token(clock()) != generate_session_token(clock())


class TestCreateAndValidate:
    """Issuing and checking sessions."""

    def test_new_session_is_valid(self, sessions, token, uow, clock, user):
        validation = sessions.validate_session(token)

        assert validation.is_valid is True
        assert validation.state == SessionState.ACTIVE
        session = validation.session
        assert session.user_id == user.user_id
        assert session.expires_at == clock() + timedelta(hours=8)
        assert session.inactivity_timeout_minutes == 30

    def test_unknown_token(self, sessions):
        validation = sessions.validate_session("nope")

        assert validation.is_valid is False
        assert validation.reason == SESSION_NOT_FOUND

    def test_absolute_expiry(self, sessions, token, clock):
        for _ in range(16):
            clock.advance(minutes=29)
            assert sessions.update_activity(token)
        clock.advance(minutes=20)

        validation = sessions.validate_session(token)

        assert validation.is_valid is False
        assert validation.reason == SessionConstants.REASON_EXPIRED
        assert validation.state == SessionState.EXPIRED_ABSOLUTE

    def test_inactivity_timeout(self, sessions, token, clock, uow):
        clock.advance(minutes=31)

        validation = sessions.validate_session(token)

        assert validation.is_valid is False
        assert validation.reason == SessionConstants.REASON_INACTIVITY
        assert validation.state == SessionState.EXPIRED_INACTIVITY
        stored = uow.user_sessions.get_by_token(token)
        assert stored.is_active is False
        assert stored.revoked_at == clock()

    def test_expired_session_stays_expired(self, sessions, token, clock):
        clock.advance(minutes=31)
        sessions.validate_session(token)
        clock.advance(seconds=1)

        assert sessions.update_activity(token) is False
        assert sessions.validate_session(token).reason == SessionConstants.REASON_INACTIVITY

    def test_valid_within_inactivity_window(self, sessions, token, clock):
        clock.advance(minutes=30)
        assert sessions.validate_session(token).is_valid is True

    def test_custom_inactivity_timeout(self, sessions, user, clock):
        token = sessions.create_session(user.user_id, "203.0.113.7", "ua", inactivity_timeout_minutes=5)
        clock.advance(minutes=6)
        assert sessions.validate_session(token).is_valid is False


class TestUpdateActivity:
    """Sliding the inactivity window."""

    def test_activity_extends_window(self, sessions, token, clock):
        clock.advance(minutes=20)
        assert sessions.update_activity(token) is True
        clock.advance(minutes=20)

        assert sessions.validate_session(token).is_valid is True

    def test_unknown_token(self, sessions):
        assert sessions.update_activity("nope") is False


class TestRevocation:
    """Explicit revocation."""

    def test_revoke(self, sessions, token, uow):
        assert sessions.revoke_session(token) is True

        validation = sessions.validate_session(token)
        assert validation.is_valid is False
        assert validation.reason == SessionConstants.REASON_LOGOUT
        assert validation.state == SessionState.REVOKED
        assert uow.user_sessions.get_by_token(token).is_revoked is True

    def test_revoke_is_idempotent(self, sessions, token):
        sessions.revoke_session(token, reason="Password changed")

        assert sessions.revoke_session(token) is True
        assert sessions.validate_session(token).reason == "Password changed"

    def test_revoke_unknown(self, sessions):
        assert sessions.revoke_session("nope") is False

    def test_revoke_all_others_keeps_current(self, sessions, user, token):
        others = [sessions.create_session(user.user_id, f"198.51.100.{i}", "ua") for i in range(3)]

        revoked = sessions.revoke_all_other_sessions(user.user_id, except_token=token)

        assert revoked == 3
        assert sessions.validate_session(token).is_valid is True
        for other in others:
            validation = sessions.validate_session(other)
            assert validation.reason == SessionConstants.REASON_REVOKED_BY_USER

    def test_revoke_all_without_exception(self, sessions, user, token):
        assert sessions.revoke_all_other_sessions(user.user_id) == 1
        assert sessions.validate_session(token).is_valid is False

    def test_other_users_untouched(self, sessions, user, token):
        stranger = sessions.create_session("user_test_002", "198.51.100.9", "ua")

        sessions.revoke_all_other_sessions(user.user_id)

        assert sessions.validate_session(stranger).is_valid is True


class TestActiveSessions:
    """Listing active sessions."""

    def test_newest_first_and_lazily_expired(self, sessions, user, clock):
        first = sessions.create_session(user.user_id, "203.0.113.1", "ua", inactivity_timeout_minutes=5)
        clock.advance(minutes=1)
        second = sessions.create_session(user.user_id, "203.0.113.2", "ua")
        clock.advance(minutes=1)
        third = sessions.create_session(user.user_id, "203.0.113.3", "ua")
        clock.advance(minutes=4)

        active = sessions.get_active_sessions(user.user_id)

        assert [s.token for s in active] == [third, second]
        assert sessions.validate_session(first).reason == SessionConstants.REASON_INACTIVITY


class TestSuspiciousActivity:
    """Concurrent-session heuristics."""

    def _open(self, sessions, user, count, **kwargs):
        for i in range(count):
            sessions.create_session(
                user.user_id,
                kwargs.get("ip", f"198.51.100.{i}"),
                "ua",
                device_fingerprint=kwargs.get("device", f"fp_{i}"),
                location=kwargs.get("location", f"BR,SP,City{i}"),
            )

    def test_three_locations_is_normal(self, sessions, user, uow):
        self._open(sessions, user, 3)

        assert sessions.detect_suspicious_activity(user.user_id) is False
        assert uow.security_events.list_for_user(user.user_id) == []

    def test_four_locations_is_suspicious(self, sessions, user, uow, clock):
        self._open(sessions, user, 4, ip="203.0.113.7")

        assert sessions.detect_suspicious_activity(user.user_id) is True

        events = uow.security_events.list_for_user(user.user_id)
        assert len(events) == 1
        assert events[0].event_type == SecurityEventType.SUSPICIOUS_ACTIVITY
        assert events[0].severity == "High"
        assert events[0].description == "Multiple concurrent sessions detected: 4 locations, 4 devices"

    def test_many_devices_is_suspicious(self, sessions, user):
        self._open(sessions, user, 6, ip="203.0.113.7", location="BR,SP,Sao Paulo")
        assert sessions.detect_suspicious_activity(user.user_id) is True

    def test_recent_ips_is_suspicious(self, sessions, user):
        self._open(sessions, user, 4, device="fp_known", location="BR,SP,Sao Paulo")
        assert sessions.detect_suspicious_activity(user.user_id) is True

    def test_old_ips_are_ignored(self, sessions, user, clock):
        for i in range(4):
            sessions.create_session(user.user_id, f"198.51.100.{i}", "ua", device_fingerprint="fp_known",
                                    location="BR,SP,Sao Paulo", inactivity_timeout_minutes=600)
        clock.advance(minutes=61)

        assert sessions.detect_suspicious_activity(user.user_id) is False

    def test_sessions_are_left_active(self, sessions, user):
        self._open(sessions, user, 4)
        sessions.detect_suspicious_activity(user.user_id)
        assert len(sessions.get_active_sessions(user.user_id)) == 4


class TestCleanup:
    """Batch expiry sweep."""

    def test_cleanup_expired_sessions(self, sessions, user, clock, token):
        sessions.create_session(user.user_id, "198.51.100.1", "ua", inactivity_timeout_minutes=600)
        clock.advance(minutes=45)

        assert sessions.cleanup_expired_sessions() == 1
        assert sessions.cleanup_expired_sessions() == 0
        assert len(sessions.get_active_sessions(user.user_id)) == 1
