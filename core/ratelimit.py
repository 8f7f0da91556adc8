"""
core/ratelimit.py -- Sliding-window rate limiting.

Pattern: Strategy. RateLimiter is the interface; two interchangeable
implementations are selected once at startup by build_rate_limiter():

  MemoryRateLimiter  -- process-local. A dict of deques guarded by one
                        threading.Lock. FastAPI runs sync dependencies in a
                        thread pool, so the read-prune-append sequence must be
                        a single critical section: two concurrent requests can
                        never both take the last slot.

  StorageRateLimiter -- the moving-window strategy of the `limits` library
                        (the engine slowapi is built on) over any storage that
                        supports moving windows (redis://, memory://,
                        mongodb://). The storage performs hit() atomically, so
                        the window is shared across worker processes.

Buckets are keyed by (namespace, identifier). Each policy checks in its own
namespace, so exhausting the auth policy never blocks general API calls.

Layer rule: core/ is the kernel. No imports from api/, auth/, or tasks/.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from limits import RateLimitItemPerSecond, parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from core.config import Settings

logger = logging.getLogger("taskflow.ratelimit")


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single check. reset_at is UTC epoch seconds."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def retry_after(self, now: Optional[float] = None) -> int:
        """Whole seconds until reset_at, never less than 1."""
        now = time.time() if now is None else now
        return max(1, math.ceil(self.reset_at - now))


@dataclass(frozen=True)
class RateLimitPolicy:
    """A named request budget, e.g. RateLimitPolicy.parse("auth", "5/minute")."""

    namespace: str
    max_requests: int
    window_seconds: int

    @classmethod
    def parse(cls, namespace: str, limit: str) -> "RateLimitPolicy":
        item = parse(limit)
        return cls(namespace=namespace, max_requests=item.amount, window_seconds=item.get_expiry())


class RateLimiter(ABC):
    @abstractmethod
    def check(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: float,
        *,
        namespace: str = "default",
    ) -> RateLimitResult:
        """Record a request for identifier if the window has room."""

    @abstractmethod
    def reset(self) -> None:
        """Forget every window."""

    def check_policy(self, policy: RateLimitPolicy, identifier: str) -> RateLimitResult:
        return self.check(
            identifier,
            policy.max_requests,
            policy.window_seconds,
            namespace=policy.namespace,
        )


def _validate(max_requests: int, window_seconds: float) -> None:
    if max_requests < 1:
        raise ValueError("max_requests must be at least 1")
    if window_seconds <= 0:
        raise ValueError("window_seconds must be positive")


class MemoryRateLimiter(RateLimiter):
    """In-process sliding-window log.

    Usage:
        limiter = MemoryRateLimiter()
        result = limiter.check("203.0.113.7", 5, 60, namespace="auth")
        if not result.allowed: ...

    clock is injectable so tests can move time without sleeping.

    Buckets whose newest entry is older than the longest window seen so far
    are swept at most once per that window, so the map holds only clients
    active within the last window.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[tuple[str, str], deque[float]] = {}
        self._max_window = 0.0
        self._last_sweep = clock()

    def check(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: float,
        *,
        namespace: str = "default",
    ) -> RateLimitResult:
        _validate(max_requests, window_seconds)
        key = (namespace, identifier)
        with self._lock:
            now = self._clock()
            self._max_window = max(self._max_window, window_seconds)
            if now - self._last_sweep >= self._max_window:
                self._sweep(now)
            cutoff = now - window_seconds
            window = self._windows.get(key)
            if window is None:
                window = self._windows[key] = deque()
            while window and window[0] <= cutoff:
                window.popleft()

            if len(window) >= max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=max_requests,
                    remaining=0,
                    reset_at=window[0] + window_seconds,
                )

            window.append(now)
            return RateLimitResult(
                allowed=True,
                limit=max_requests,
                remaining=max_requests - len(window),
                reset_at=now + window_seconds,
            )

    def _sweep(self, now: float) -> None:
        """Drop buckets with no entry inside the longest window. Caller holds the lock."""
        cutoff = now - self._max_window
        stale = [key for key, window in self._windows.items() if not window or window[-1] <= cutoff]
        for key in stale:
            del self._windows[key]
        self._last_sweep = now
        if stale:
            logger.debug("Swept %d idle rate-limit buckets", len(stale))

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        """Number of tracked buckets (test/diagnostic helper)."""
        with self._lock:
            return len(self._windows)


class StorageRateLimiter(RateLimiter):
    """Moving-window limiter backed by a `limits` storage.

    Usage:
        limiter = StorageRateLimiter("redis://localhost:6379/0")
    """

    def __init__(self, storage_uri: str) -> None:
        self._storage = storage_from_string(storage_uri)
        self._strategy = MovingWindowRateLimiter(self._storage)

    def check(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: float,
        *,
        namespace: str = "default",
    ) -> RateLimitResult:
        _validate(max_requests, window_seconds)
        item = RateLimitItemPerSecond(max_requests, max(1, math.ceil(window_seconds)))
        allowed = self._strategy.hit(item, namespace, identifier)
        stats = self._strategy.get_window_stats(item, namespace, identifier)
        return RateLimitResult(
            allowed=allowed,
            limit=max_requests,
            remaining=0 if not allowed else max(0, stats.remaining),
            reset_at=float(stats.reset_time),
        )

    def reset(self) -> None:
        self._storage.reset()


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Select the limiter implementation from RATE_LIMIT_STORAGE_URI."""
    if settings.rate_limit_storage_uri:
        logger.info("Rate limiter: shared storage backend")
        return StorageRateLimiter(settings.rate_limit_storage_uri)
    logger.info("Rate limiter: in-memory backend")
    return MemoryRateLimiter()
