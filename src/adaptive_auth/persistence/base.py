"""Persistence contracts - repositories and the unit of work.

Backends implement these ABCs. Components only ever talk to a
`UnitOfWork`, reaching entity stores through its repository attributes.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from adaptive_auth.data.schemas import (
    AnomalyRecord,
    LoginAttempt,
    OtpSession,
    SecurityEvent,
    User,
    UserBehaviorBaseline,
    UserSession,
)


class UserRepository(ABC):
    """Read access to user accounts."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        """Look up a user by normalized (trimmed, lower-cased) email."""
        pass

    @abstractmethod
    def add(self, user: User) -> None:
        pass


class LoginAttemptRepository(ABC):
    """Append-only store of scored login attempts."""

    @abstractmethod
    def add(self, attempt: LoginAttempt) -> None:
        pass

    @abstractmethod
    def get(self, attempt_id: str) -> Optional[LoginAttempt]:
        pass

    @abstractmethod
    def count_by_user_since(self, user_id: str, since: datetime) -> int:
        """Count attempts by `user_id` at or after `since`."""
        pass

    @abstractmethod
    def count_failed_by_ip_since(self, ip_address: str, since: datetime) -> int:
        """Count failed attempts from `ip_address` at or after `since`."""
        pass


class BaselineRepository(ABC):
    """Per-user behavioral baselines. Saves are last-write-wins."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[UserBehaviorBaseline]:
        pass

    @abstractmethod
    def save(self, baseline: UserBehaviorBaseline) -> None:
        pass


class AnomalyRepository(ABC):
    """Anomaly records."""

    @abstractmethod
    def add(self, record: AnomalyRecord) -> None:
        pass

    @abstractmethod
    def get(self, anomaly_id: str) -> Optional[AnomalyRecord]:
        pass

    @abstractmethod
    def update(self, record: AnomalyRecord) -> None:
        pass

    @abstractmethod
    def list_unresolved(self, limit: int) -> List[AnomalyRecord]:
        """Pending records, newest first."""
        pass

    @abstractmethod
    def list_detected_between(self, start: datetime, end: datetime) -> List[AnomalyRecord]:
        pass


class OtpSessionRepository(ABC):
    """One-time code sessions. At most one non-terminal session per user."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[OtpSession]:
        pass

    @abstractmethod
    def replace_active_for_user(self, session: OtpSession) -> int:
        """Atomically drop the user's existing sessions and store `session`.

        Returns:
            Number of sessions removed

        Raises:
            ConcurrencyConflictError: If a concurrent replace won the race
        """
        pass

    @abstractmethod
    def update(self, session: OtpSession) -> None:
        pass

    @abstractmethod
    def delete(self, session: OtpSession) -> None:
        """Remove one session, clearing the user's active pointer if it is current."""
        pass

    @abstractmethod
    def delete_expired(self, now: datetime) -> int:
        """Delete sessions whose `expires_at` is before `now`."""
        pass


class UserSessionRepository(ABC):
    """Session tokens."""

    @abstractmethod
    def add(self, session: UserSession) -> None:
        pass

    @abstractmethod
    def get_by_token(self, token: str) -> Optional[UserSession]:
        pass

    @abstractmethod
    def update(self, session: UserSession) -> None:
        pass

    @abstractmethod
    def list_active_for_user(self, user_id: str) -> List[UserSession]:
        pass

    @abstractmethod
    def list_active(self) -> List[UserSession]:
        pass


class SecurityEventRepository(ABC):
    """Security events."""

    @abstractmethod
    def add(self, event: SecurityEvent) -> None:
        pass

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[SecurityEvent]:
        pass


class UnitOfWork(ABC):
    """Transactional boundary over all repositories.

    Writes made between `begin` and `commit` land together or not at
    all. Outside a transaction every write is applied immediately.
    Transactions nest: only the outermost `begin`/`commit` pair counts.
    """

    users: UserRepository
    login_attempts: LoginAttemptRepository
    baselines: BaselineRepository
    anomalies: AnomalyRepository
    otp_sessions: OtpSessionRepository
    user_sessions: UserSessionRepository
    security_events: SecurityEventRepository

    @abstractmethod
    def begin(self) -> None:
        pass

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        pass

    def health_check(self) -> bool:
        return True

    @contextmanager
    def transaction(self) -> Iterator["UnitOfWork"]:
        """Commit on success, roll back and re-raise on any exception."""
        self.begin()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()
