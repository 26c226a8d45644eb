"""Rate limiting by (client key, action).

Fixed window starting at the first attempt. Once the number of failed
attempts in the window reaches the action's limit, the key is blocked
for `block_duration_minutes`. An expired window resets all counters.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from adaptive_auth.common.constants import RateLimitConstants
from adaptive_auth.core.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class RateLimiter(ABC):
    """Rate limiter contract. Implementations must be atomic per key."""

    @abstractmethod
    def can_attempt(self, key: str, action: str, max_attempts: int) -> bool:
        pass

    @abstractmethod
    def record_attempt(self, key: str, action: str, success: bool) -> None:
        pass

    def purge_expired(self) -> int:
        """Drop state that no longer affects any decision. Returns entries removed."""
        return 0


@dataclass
class RateLimitEntry:
    first_attempt: datetime
    last_attempt: datetime
    attempt_count: int = 0
    successful_count: int = 0
    failed_count: int = 0
    blocked_until: Optional[datetime] = None
    block_reason: Optional[str] = None

    def is_blocked(self, now: datetime) -> bool:
        return self.blocked_until is not None and self.blocked_until > now

    def reset(self, now: datetime) -> None:
        self.first_attempt = now
        self.last_attempt = now
        self.attempt_count = 0
        self.successful_count = 0
        self.failed_count = 0
        self.blocked_until = None
        self.block_reason = None


class InMemoryRateLimiter(RateLimiter):
    """Process-local rate limiter.

    Args:
        limits: Max attempts per action; unknown actions use `default_max_attempts`
        window_minutes: Counting window length
        block_duration_minutes: Block length once failures reach the limit
        clock: Current UTC time provider
    """

    def __init__(
        self,
        limits: Optional[Dict[str, int]] = None,
        window_minutes: int = RateLimitConstants.WINDOW_MINUTES,
        block_duration_minutes: int = RateLimitConstants.BLOCK_DURATION_MINUTES,
        default_max_attempts: int = RateLimitConstants.DEFAULT_MAX_ATTEMPTS,
        clock: Clock = utcnow,
    ):
        self.limits = {k.upper(): v for k, v in (limits or {}).items()}
        self.window = timedelta(minutes=window_minutes)
        self.block_duration = timedelta(minutes=block_duration_minutes)
        self.default_max_attempts = default_max_attempts
        self._clock = clock
        self._entries: Dict[Tuple[str, str], RateLimitEntry] = {}
        self._lock = threading.Lock()

    def _max_attempts(self, action: str) -> int:
        return self.limits.get(action.upper(), self.default_max_attempts)

    def _window_expired(self, entry: RateLimitEntry, now: datetime) -> bool:
        return now > entry.first_attempt + self.window

    def can_attempt(self, key: str, action: str, max_attempts: int) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._entries.get((key, action))
            if entry is None:
                return True

            if entry.is_blocked(now):
                logger.warning(f"Client {key} is blocked for {action} until {entry.blocked_until}")
                return False

            if self._window_expired(entry, now):
                entry.reset(now)
                return True

            if entry.attempt_count >= max_attempts:
                logger.warning(
                    f"Client {key} exceeded rate limit for {action}: "
                    f"{entry.attempt_count}/{max_attempts}"
                )
                return False
            return True

    def record_attempt(self, key: str, action: str, success: bool) -> None:
        now = self._clock()
        max_attempts = self._max_attempts(action)
        with self._lock:
            entry = self._entries.get((key, action))
            if entry is None or self._window_expired(entry, now):
                entry = RateLimitEntry(first_attempt=now, last_attempt=now)
                self._entries[(key, action)] = entry

            entry.attempt_count += 1
            if success:
                entry.successful_count += 1
            else:
                entry.failed_count += 1
            entry.last_attempt = now

            if not success and entry.failed_count >= max_attempts:
                entry.blocked_until = now + self.block_duration
                entry.block_reason = f"Exceeded {max_attempts} failed {action.lower()} attempts"
                logger.warning(
                    f"Client {key} blocked for {action} until {entry.blocked_until} - {entry.block_reason}"
                )

        logger.debug(f"Recorded {action} attempt for {key}: success={success}, total={entry.attempt_count}")

    def remaining_attempts(self, key: str, action: str) -> int:
        now = self._clock()
        max_attempts = self._max_attempts(action)
        with self._lock:
            entry = self._entries.get((key, action))
            if entry is None or self._window_expired(entry, now):
                return max_attempts
            if entry.is_blocked(now):
                return 0
            return max(0, max_attempts - entry.attempt_count)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [
                k for k, entry in self._entries.items()
                if self._window_expired(entry, now) and not entry.is_blocked(now)
            ]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug(f"Purged {len(stale)} expired rate limit entries")
        return len(stale)

    def reset(self, key: str, action: str) -> None:
        with self._lock:
            self._entries.pop((key, action), None)
        logger.info(f"Rate limit reset for {key}, type: {action}")
