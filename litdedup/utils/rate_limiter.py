import asyncio
import time

import structlog

logger = structlog.get_logger()


class RateLimiter:
    """Token bucket shared by the coroutines that call one external catalog.

    With ``burst_size=1`` consecutive acquisitions are spaced at least
    ``1 / requests_per_second`` seconds apart. Waiters are served one at a
    time so concurrent callers cannot spend the same token.
    """

    def __init__(self, requests_per_second: float = 3.0, burst_size: int = 1):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        if burst_size < 1:
            raise ValueError("burst_size must be at least 1")
        self.rate = float(requests_per_second)
        self.burst_size = burst_size
        self._tokens = float(burst_size)
        self._refilled_at = time.monotonic()
        self._lock = asyncio.Lock()

    @classmethod
    def from_delay(cls, delay_seconds: float) -> "RateLimiter":
        """Limiter that keeps ``delay_seconds`` between requests"""
        return cls(requests_per_second=1.0 / delay_seconds)

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(
            float(self.burst_size), self._tokens + (now - self._refilled_at) * self.rate
        )
        self._refilled_at = now

    async def acquire(self, requester_id: str = "system") -> float:
        """Take one token, sleeping until it is available.

        Returns the number of seconds spent sleeping.
        """
        async with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return 0.0

            delay = (1 - self._tokens) / self.rate
            logger.debug("rate_limit_wait", requester_id=requester_id, delay=round(delay, 3))
            await asyncio.sleep(delay)
            self._tokens = 0.0
            self._refilled_at = time.monotonic()
            return delay
