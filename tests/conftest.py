"""Shared fixtures for adaptive-auth tests."""

from datetime import datetime, timedelta, timezone

import pytest

from adaptive_auth.api.service import AuthenticationService
from adaptive_auth.common.config.rules import AuthRules
from adaptive_auth.core.types import MfaMethod
from adaptive_auth.data.schemas import LoginAttemptData, User, UserBehaviorBaseline
from adaptive_auth.integrations.alerts import AlertDispatcher
from adaptive_auth.integrations.delivery import CodeDeliveryChannel
from adaptive_auth.mfa.codes import CodeHasher
from adaptive_auth.persistence.memory import InMemoryUnitOfWork

# Wednesday afternoon
BASE_TIME = datetime(2026, 1, 28, 14, 30, tzinfo=timezone.utc)


class FakeClock:
    """Mutable clock for driving expiry and windows."""

    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, **kwargs) -> datetime:
        self.now = self.now.replace(**kwargs)
        return self.now


class RecordingDelivery(CodeDeliveryChannel):
    """Captures codes instead of sending them."""

    def __init__(self):
        self.sent = []

    def send(self, user, code, method):
        self.sent.append((user.email, code, method))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


class RecordingAlerts(AlertDispatcher):
    """Captures alerts instead of dispatching them."""

    def __init__(self):
        self.alerts = []

    def send_alert(self, user_id, alert_type, severity, title, message, requires_action):
        self.alerts.append({
            "user_id": user_id,
            "alert_type": alert_type,
            "severity": severity,
            "title": title,
            "message": message,
            "requires_action": requires_action,
        })


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rules():
    return AuthRules()


@pytest.fixture
def uow():
    return InMemoryUnitOfWork()


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def alerts():
    return RecordingAlerts()


@pytest.fixture
def hasher():
    return CodeHasher("test-hash-key")


@pytest.fixture
def user(uow):
    """A registered user who prefers SMS codes."""
    account = User(
        user_id="user_test_001",
        email="Ana@Example.com",
        full_name="Ana Souza",
        phone="+5511999990000",
        mfa_option=MfaMethod.SMS,
    )
    uow.users.add(account)
    return uow.users.get(account.user_id)


@pytest.fixture
def service(uow, hasher, delivery, alerts, rules, clock):
    """Fully wired service over the in-memory backend."""
    return AuthenticationService.build(
        uow=uow,
        hasher=hasher,
        delivery=delivery,
        alerts=alerts,
        rules=rules,
        clock=clock,
    )


@pytest.fixture
def make_attempt(user):
    """Factory for attempts from the user's usual context."""
    def _make(**overrides) -> LoginAttemptData:
        data = {
            "user_id": user.user_id,
            "email": user.email,
            "ip_address": "203.0.113.7",
            "user_agent": "Mozilla/5.0",
            "country": "BR",
            "region": "SP",
            "city": "Sao Paulo",
            "device_fingerprint": "fp_known",
            "is_successful": True,
        }
        data.update(overrides)
        return LoginAttemptData(**data)
    return _make


@pytest.fixture
def seed_baseline(uow, user, clock):
    """Factory that stores a settled baseline for the user."""
    def _seed(**overrides) -> UserBehaviorBaseline:
        data = {
            "user_id": user.user_id,
            "recent_ips": ["203.0.113.7"],
            "recent_locations": ["BR,SP,Sao Paulo"],
            "known_devices": ["fp_known"],
            "typical_hours": [clock().hour],
            "typical_days_of_week": [clock().weekday()],
            "first_login_at": clock() - timedelta(days=30),
            "last_login_at": clock() - timedelta(days=1),
            "last_updated_at": clock() - timedelta(days=1),
            "total_successful_logins": 12,
        }
        data.update(overrides)
        baseline = UserBehaviorBaseline(**data)
        uow.baselines.save(baseline)
        return baseline
    return _seed
