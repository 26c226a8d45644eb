"""Tests for the in-memory rate limiter."""

import pytest

from adaptive_auth.integrations.rate_limiter import InMemoryRateLimiter

ACTION = "MFA_VERIFY"


@pytest.fixture
def limiter(clock):
    return InMemoryRateLimiter(
        limits={ACTION: 3}, window_minutes=15, block_duration_minutes=30, clock=clock
    )


class TestInMemoryRateLimiter:
    """Fixed-window counting and blocking."""

    def test_first_attempt_allowed(self, limiter):
        assert limiter.can_attempt("203.0.113.7", ACTION, 3) is True
        assert limiter.remaining_attempts("203.0.113.7", ACTION) == 3

    def test_attempts_consume_budget(self, limiter):
        limiter.record_attempt("203.0.113.7", ACTION, True)
        limiter.record_attempt("203.0.113.7", ACTION, True)

        assert limiter.remaining_attempts("203.0.113.7", ACTION) == 1
        assert limiter.can_attempt("203.0.113.7", ACTION, 3) is True

        limiter.record_attempt("203.0.113.7", ACTION, True)
        assert limiter.can_attempt("203.0.113.7", ACTION, 3) is False

    def test_failures_block_for_duration(self, limiter, clock):
        for _ in range(3):
            limiter.record_attempt("203.0.113.7", ACTION, False)

        assert limiter.can_attempt("203.0.113.7", ACTION, 3) is False
        assert limiter.remaining_attempts("203.0.113.7", ACTION) == 0

        clock.advance(minutes=29)
        assert limiter.can_attempt("203.0.113.7", ACTION, 3) is False

        clock.advance(minutes=2)
        assert limiter.can_attempt("203.0.113.7", ACTION, 3) is True

    def test_window_expiry_resets_counters(self, limiter, clock):
        limiter.record_attempt("203.0.113.7", ACTION, True)
        limiter.record_attempt("203.0.113.7", ACTION, True)
        limiter.record_attempt("203.0.113.7", ACTION, True)
        clock.advance(minutes=16)

        assert limiter.can_attempt("203.0.113.7", ACTION, 3) is True
        assert limiter.remaining_attempts("203.0.113.7", ACTION) == 3

    def test_keys_and_actions_are_independent(self, limiter):
        for _ in range(3):
            limiter.record_attempt("203.0.113.7", ACTION, False)

        assert limiter.can_attempt("198.51.100.1", ACTION, 3) is True
        assert limiter.can_attempt("203.0.113.7", "MFA_REQUEST", 5) is True

    def test_unknown_action_uses_default(self, clock):
        limiter = InMemoryRateLimiter(default_max_attempts=2, clock=clock)
        limiter.record_attempt("k", "OTHER", False)
        limiter.record_attempt("k", "OTHER", False)

        assert limiter.can_attempt("k", "OTHER", 2) is False

    def test_reset(self, limiter):
        for _ in range(3):
            limiter.record_attempt("203.0.113.7", ACTION, False)

        limiter.reset("203.0.113.7", ACTION)

        assert limiter.can_attempt("203.0.113.7", ACTION, 3) is True


class TestPurgeExpired:
    """Maintenance sweep of idle entries."""

    def test_drops_entries_past_their_window(self, limiter, clock):
        limiter.record_attempt("203.0.113.7", ACTION, True)
        limiter.record_attempt("198.51.100.1", ACTION, True)
        clock.advance(minutes=16)
        limiter.record_attempt("192.0.2.44", ACTION, True)

        assert limiter.purge_expired() == 2
        assert set(limiter._entries) == {("192.0.2.44", ACTION)}

    def test_keeps_blocked_entries(self, limiter, clock):
        for _ in range(3):
            limiter.record_attempt("203.0.113.7", ACTION, False)
        clock.advance(minutes=20)

        assert limiter.purge_expired() == 0
        assert limiter.can_attempt("203.0.113.7", ACTION, 3) is False

        clock.advance(minutes=11)
        assert limiter.purge_expired() == 1
        assert limiter.can_attempt("203.0.113.7", ACTION, 3) is True
