import asyncio
import time
from collections import deque
from typing import Callable

from fastapi import Request

from monthly_ledger.settings import LedgerSettings

WINDOW_SECONDS = 60


class SimpleRateLimiter:
    """
    Sliding-window request budget per client.

    Each key keeps a deque of its request timestamps inside the window. Keys
    whose window has emptied are dropped on the next sweep. State lives in
    process memory, so every worker enforces its own budget.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int = WINDOW_SECONDS,
        burst: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._limit = max(1, max_requests) + max(0, burst)
        self._window_seconds = max(1, window_seconds)
        self._clock = clock
        self._buckets: dict[str, deque[float]] = {}
        self._last_sweep = clock()
        self._lock = asyncio.Lock()

    async def allow(self, key: str) -> tuple[bool, float]:
        """
        Record a request for `key` when it fits the budget.

        Returns (allowed, retry_after_seconds); retry_after is 0.0 when allowed.
        """

        now = self._clock()
        async with self._lock:
            if now - self._last_sweep >= self._window_seconds:
                self._sweep(now)

            bucket = self._buckets.setdefault(key, deque())
            self._evict_old(bucket, now)
            if len(bucket) >= self._limit:
                return False, max(self._window_seconds - (now - bucket[0]), 0.0)

            bucket.append(now)
            return True, 0.0

    def remaining(self, key: str) -> int:
        return max(self._limit - len(self._buckets.get(key, ())), 0)

    def tracked_keys(self) -> int:
        return len(self._buckets)

    def _sweep(self, now: float) -> None:
        for key in list(self._buckets):
            bucket = self._buckets[key]
            self._evict_old(bucket, now)
            if not bucket:
                del self._buckets[key]
        self._last_sweep = now

    def _evict_old(self, bucket: deque[float], now: float) -> None:
        threshold = now - self._window_seconds
        while bucket and bucket[0] <= threshold:
            bucket.popleft()


def build_rate_limiter(settings: LedgerSettings) -> SimpleRateLimiter:
    return SimpleRateLimiter(
        max_requests=settings.rate_limit_per_minute,
        window_seconds=WINDOW_SECONDS,
        burst=settings.rate_limit_burst,
    )


def rate_limit_key(request: Request) -> str:
    """
    Budget key for a request: the client address. The user header is
    unverified and never part of the key.
    """

    client = request.client
    return f"ip:{client.host}" if client else "ip:unknown"


def retry_after_header(retry_after: float) -> str:
    return str(max(1, int(retry_after + 0.999)))
