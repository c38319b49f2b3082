"""Per-user rate limiting for question submissions."""

import logging
import time
from collections import deque
from collections.abc import Callable, Iterable
from threading import Lock

from .models import RateLimitStatus

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding log rate limiter keyed by user and scope.

    Each admission is recorded with its timestamp; a key is allowed while
    fewer than ``max_requests`` admissions fall inside the last
    ``window_seconds``. Users on the exempt list bypass the limiter entirely.
    """

    def __init__(
        self,
        max_requests: int = 3,
        window_seconds: float = 60.0,
        exempt_users: Iterable[str] = (),
        clock: Callable[[], float] = time.time,
    ):
        """Initialize rate limiter

        Args:
            max_requests: Admissions allowed per window
            window_seconds: Window length in seconds
            exempt_users: User IDs that are never limited
            clock: Source of epoch seconds
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.exempt_users = frozenset(exempt_users)
        self._clock = clock
        self._windows: dict[tuple[str, str], deque[float]] = {}
        self._lock = Lock()

    def is_exempt(self, user_id: str) -> bool:
        return user_id in self.exempt_users

    def _evict(self, key: tuple[str, str], now: float) -> deque[float] | None:
        """Drop expired admissions for a key; forget the key once its log is empty."""
        window = self._windows.get(key)
        if window is None:
            return None
        while window and window[0] <= now - self.window_seconds:
            window.popleft()
        if not window:
            del self._windows[key]
            return None
        return window

    def _status(self, key: tuple[str, str], now: float) -> RateLimitStatus:
        window = self._evict(key, now)
        if window is None:
            return RateLimitStatus(
                allowed=True,
                remaining_requests=self.max_requests,
                reset_time=now + self.window_seconds,
            )
        remaining = max(self.max_requests - len(window), 0)
        return RateLimitStatus(
            allowed=remaining > 0,
            remaining_requests=remaining,
            reset_time=window[0] + self.window_seconds,
        )

    def check(self, user_id: str, scope: str) -> RateLimitStatus:
        """Report whether a user may submit another question in a scope.

        Args:
            user_id: Submitting user
            scope: Guild ID, or ``dm`` for direct messages

        Returns:
            RateLimitStatus with remaining quota and reset time in epoch seconds
        """
        now = self._clock()
        if self.is_exempt(user_id):
            return RateLimitStatus(
                allowed=True,
                remaining_requests=self.max_requests,
                reset_time=now + self.window_seconds,
                exempt=True,
            )

        with self._lock:
            status = self._status((user_id, scope), now)

        if not status.allowed:
            logger.warning(
                f"Rate limit exceeded for user {user_id} in {scope}, "
                f"resets in {status.reset_time - now:.0f}s"
            )
        return status

    def record(self, user_id: str, scope: str) -> None:
        """Record one admission for a user in a scope."""
        if self.is_exempt(user_id):
            return

        now = self._clock()
        key = (user_id, scope)
        with self._lock:
            self._evict(key, now)
            self._windows.setdefault(key, deque()).append(now)
            count = len(self._windows[key])
        logger.debug(f"Rate limit: recorded request {count}/{self.max_requests} for {user_id} in {scope}")

    def reset(self, user_id: str | None = None, scope: str | None = None) -> None:
        """Reset one key, or every key when no user is given."""
        with self._lock:
            if user_id is None:
                self._windows.clear()
                logger.info("Reset all rate limit windows")
            else:
                self._windows.pop((user_id, scope or "dm"), None)
                logger.info(f"Reset rate limit window for {user_id} in {scope or 'dm'}")

    def __len__(self) -> int:
        """Number of keys with live windows."""
        with self._lock:
            now = self._clock()
            for key in list(self._windows):
                self._evict(key, now)
            return len(self._windows)
