"""In-memory persistence backend.

Thread-safe through a single re-entrant lock shared by all repositories.
A transaction holds the lock from `begin` until `commit`/`rollback`,
so transactions are serialized; rollback restores a snapshot taken at
`begin`. Records are copied on the way in and out, so callers never
share mutable state with the store.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from adaptive_auth.data.schemas import (
    AnomalyRecord,
    LoginAttempt,
    OtpSession,
    SecurityEvent,
    User,
    UserBehaviorBaseline,
    UserSession,
)
from adaptive_auth.persistence.base import (
    AnomalyRepository,
    BaselineRepository,
    LoginAttemptRepository,
    OtpSessionRepository,
    SecurityEventRepository,
    UnitOfWork,
    UserRepository,
    UserSessionRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class _MemoryState:
    users: Dict[str, User] = field(default_factory=dict)
    login_attempts: Dict[str, LoginAttempt] = field(default_factory=dict)
    baselines: Dict[str, UserBehaviorBaseline] = field(default_factory=dict)
    anomalies: Dict[str, AnomalyRecord] = field(default_factory=dict)
    otp_sessions: Dict[str, OtpSession] = field(default_factory=dict)
    user_sessions: Dict[str, UserSession] = field(default_factory=dict)
    security_events: Dict[str, SecurityEvent] = field(default_factory=dict)


class _MemoryRepository:
    def __init__(self, state: _MemoryState, lock: threading.RLock):
        self._state = state
        self._lock = lock


class InMemoryUserRepository(_MemoryRepository, UserRepository):

    def get(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._state.users.get(user_id)
            return user.model_copy(deep=True) if user else None

    def get_by_email(self, email: str) -> Optional[User]:
        normalized = email.strip().lower()
        with self._lock:
            for user in self._state.users.values():
                if user.email.strip().lower() == normalized:
                    return user.model_copy(deep=True)
        return None

    def add(self, user: User) -> None:
        with self._lock:
            self._state.users[user.user_id] = user.model_copy(
                update={"email": user.email.strip().lower()}, deep=True
            )


class InMemoryLoginAttemptRepository(_MemoryRepository, LoginAttemptRepository):

    def add(self, attempt: LoginAttempt) -> None:
        with self._lock:
            self._state.login_attempts[attempt.attempt_id] = attempt

    def get(self, attempt_id: str) -> Optional[LoginAttempt]:
        with self._lock:
            return self._state.login_attempts.get(attempt_id)

    def count_by_user_since(self, user_id: str, since: datetime) -> int:
        with self._lock:
            return sum(
                1 for a in self._state.login_attempts.values()
                if a.user_id == user_id and a.attempted_at >= since
            )

    def count_failed_by_ip_since(self, ip_address: str, since: datetime) -> int:
        with self._lock:
            return sum(
                1 for a in self._state.login_attempts.values()
                if a.ip_address == ip_address and not a.is_successful and a.attempted_at >= since
            )


class InMemoryBaselineRepository(_MemoryRepository, BaselineRepository):

    def get(self, user_id: str) -> Optional[UserBehaviorBaseline]:
        with self._lock:
            baseline = self._state.baselines.get(user_id)
            return baseline.model_copy(deep=True) if baseline else None

    def save(self, baseline: UserBehaviorBaseline) -> None:
        with self._lock:
            self._state.baselines[baseline.user_id] = baseline.model_copy(deep=True)


class InMemoryAnomalyRepository(_MemoryRepository, AnomalyRepository):

    def add(self, record: AnomalyRecord) -> None:
        with self._lock:
            self._state.anomalies[record.anomaly_id] = record.model_copy(deep=True)

    def get(self, anomaly_id: str) -> Optional[AnomalyRecord]:
        with self._lock:
            record = self._state.anomalies.get(anomaly_id)
            return record.model_copy(deep=True) if record else None

    def update(self, record: AnomalyRecord) -> None:
        self.add(record)

    def list_unresolved(self, limit: int) -> List[AnomalyRecord]:
        with self._lock:
            pending = [r for r in self._state.anomalies.values() if not r.is_resolved]
        pending.sort(key=lambda r: r.detected_at, reverse=True)
        return [r.model_copy(deep=True) for r in pending[:limit]]

    def list_detected_between(self, start: datetime, end: datetime) -> List[AnomalyRecord]:
        with self._lock:
            return [
                r.model_copy(deep=True) for r in self._state.anomalies.values()
                if start <= r.detected_at <= end
            ]


class InMemoryOtpSessionRepository(_MemoryRepository, OtpSessionRepository):

    def get(self, session_id: str) -> Optional[OtpSession]:
        with self._lock:
            session = self._state.otp_sessions.get(session_id)
            return session.model_copy(deep=True) if session else None

    def replace_active_for_user(self, session: OtpSession) -> int:
        with self._lock:
            stale = [
                sid for sid, s in self._state.otp_sessions.items()
                if s.user_id == session.user_id
            ]
            for sid in stale:
                del self._state.otp_sessions[sid]
            self._state.otp_sessions[session.session_id] = session.model_copy(deep=True)
            return len(stale)

    def update(self, session: OtpSession) -> None:
        with self._lock:
            self._state.otp_sessions[session.session_id] = session.model_copy(deep=True)

    def delete(self, session: OtpSession) -> None:
        with self._lock:
            self._state.otp_sessions.pop(session.session_id, None)

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [sid for sid, s in self._state.otp_sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._state.otp_sessions[sid]
            return len(expired)


class InMemoryUserSessionRepository(_MemoryRepository, UserSessionRepository):

    def add(self, session: UserSession) -> None:
        with self._lock:
            self._state.user_sessions[session.token] = session.model_copy(deep=True)

    def get_by_token(self, token: str) -> Optional[UserSession]:
        with self._lock:
            session = self._state.user_sessions.get(token)
            return session.model_copy(deep=True) if session else None

    def update(self, session: UserSession) -> None:
        self.add(session)

    def list_active_for_user(self, user_id: str) -> List[UserSession]:
        with self._lock:
            return [
                s.model_copy(deep=True) for s in self._state.user_sessions.values()
                if s.user_id == user_id and s.is_active
            ]

    def list_active(self) -> List[UserSession]:
        with self._lock:
            return [s.model_copy(deep=True) for s in self._state.user_sessions.values() if s.is_active]


class InMemorySecurityEventRepository(_MemoryRepository, SecurityEventRepository):

    def add(self, event: SecurityEvent) -> None:
        with self._lock:
            self._state.security_events[event.event_id] = event.model_copy(deep=True)

    def list_for_user(self, user_id: str) -> List[SecurityEvent]:
        with self._lock:
            events = [e for e in self._state.security_events.values() if e.user_id == user_id]
        return sorted(events, key=lambda e: e.created_at)


class InMemoryUnitOfWork(UnitOfWork):
    """Unit of work over process-local dictionaries."""

    def __init__(self):
        self._lock = threading.RLock()
        self._state = _MemoryState()
        self._snapshot: Optional[_MemoryState] = None
        self._depth = 0

        self.users = InMemoryUserRepository(self._state, self._lock)
        self.login_attempts = InMemoryLoginAttemptRepository(self._state, self._lock)
        self.baselines = InMemoryBaselineRepository(self._state, self._lock)
        self.anomalies = InMemoryAnomalyRepository(self._state, self._lock)
        self.otp_sessions = InMemoryOtpSessionRepository(self._state, self._lock)
        self.user_sessions = InMemoryUserSessionRepository(self._state, self._lock)
        self.security_events = InMemorySecurityEventRepository(self._state, self._lock)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def begin(self) -> None:
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = copy.deepcopy(self._state)
        self._depth += 1

    def commit(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0:
            self._snapshot = None
        self._lock.release()

    def rollback(self) -> None:
        if self._depth == 0:
            return
        if self._snapshot is not None:
            # Restore in place: repositories hold a reference to the state
            for name in self._state.__dataclass_fields__:
                setattr(self._state, name, getattr(self._snapshot, name))
            self._snapshot = None
        logger.debug("In-memory transaction rolled back")
        while self._depth > 0:
            self._depth -= 1
            self._lock.release()
