"""Token bucket rate limiting for the HTTP API."""

import logging
import threading
import time
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse

from .errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class TokenBucket:
    """
    Classic token bucket.

    ``capacity`` bounds bursts, ``refill_rate`` is the sustained number of
    requests per second. The clock is injectable for tests.
    """

    def __init__(self, capacity: int, refill_rate: float, clock: Callable[[], float] = time.monotonic):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.clock = clock
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock = threading.Lock()

    def allow(self) -> bool:
        """Take one token if available."""
        with self._lock:
            now = self.clock()
            elapsed = max(0.0, now - self._last_refill)
            self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
            self._last_refill = now

            if self._tokens < 1:
                return False
            self._tokens -= 1
            return True

    @property
    def tokens(self) -> float:
        with self._lock:
            return self._tokens


def rate_limit_middleware(bucket: TokenBucket):
    """HTTP middleware refusing requests with 429 when the bucket is empty."""

    async def middleware(request: Request, call_next):
        if not bucket.allow():
            logger.warning(f"Rate limit exceeded: {request.method} {request.url.path}")
            error = RateLimitExceeded("Too many requests, please try again later")
            return JSONResponse(
                status_code=error.http_status,
                content={"error": {"message": error.message, "type": error.code}},
            )
        return await call_next(request)

    return middleware
