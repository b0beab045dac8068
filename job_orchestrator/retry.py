"""Bounded retry with linear back-off for outbound HTTP calls."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from .errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often a request is attempted and how long to wait in between.

    The wait before retry ``n`` (1-based) is ``n * base_delay`` seconds.
    ``attempts=1`` disables retries.
    """
    attempts: int = 1
    base_delay: float = 1.0

    def delay(self, attempt: int) -> float:
        return self.base_delay * (attempt + 1)


NO_RETRY = RetryPolicy(attempts=1)


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code == 429


async def send_with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    policy: RetryPolicy,
    target: str,
) -> httpx.Response:
    """
    Run ``send`` until it returns a non-retryable response.

    Network errors, 5xx and 429 are retried; any other response is returned
    as is, including 4xx. Raises TransportError once attempts run out.
    """
    last_error: Optional[Exception] = None
    last_response: Optional[httpx.Response] = None
    attempts = max(1, policy.attempts)

    for attempt in range(attempts):
        try:
            response = await send()
        except httpx.HTTPError as e:
            last_error, last_response = e, None
            logger.warning(f"{target} attempt {attempt + 1}/{attempts} failed: {e}")
        else:
            if not is_retryable_status(response.status_code):
                return response
            last_error, last_response = None, response
            logger.warning(
                f"{target} attempt {attempt + 1}/{attempts} returned HTTP {response.status_code}"
            )

        if attempt < attempts - 1:
            await asyncio.sleep(policy.delay(attempt))

    if last_response is not None:
        raise TransportError(
            f"{target} returned HTTP {last_response.status_code}: {last_response.text[:200]}"
        )
    raise TransportError(f"{target} request failed: {last_error}")
