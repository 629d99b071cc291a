"""Async rate limiter: concurrency cap plus token bucket.

Gates every request attempt to the market-data provider so the server
schedule and client poll loops sharing one process cannot burn through the
provider's per-minute quota. Retry policy lives in ``fetcher``; this module
only decides *when* an attempt may start.
"""

from __future__ import annotations

import asyncio
import logging
import time

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FINNHUB_REQUESTS_PER_SECOND: float = 1.0
FINNHUB_MAX_CONCURRENT: int = 5


class RateLimiter:
    """Async rate limiter combining concurrency control and token bucket.

    Usage::

        limiter = RateLimiter(max_concurrent=5, requests_per_second=1.0)

        await limiter.acquire()
        try:
            response = await client.get(url)
        finally:
            limiter.release()
    """

    def __init__(
        self,
        max_concurrent: int = FINNHUB_MAX_CONCURRENT,
        requests_per_second: float = FINNHUB_REQUESTS_PER_SECOND,
    ) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._requests_per_second = requests_per_second

        # Token bucket state
        self._token_interval = 1.0 / requests_per_second
        self._tokens = float(max_concurrent)
        self._max_tokens = float(max_concurrent)
        self._last_refill_time = time.monotonic()
        self._bucket_lock = asyncio.Lock()

        logger.info(
            "RateLimiter initialized: max_concurrent=%d, rate=%.1f req/s",
            max_concurrent,
            requests_per_second,
        )

    async def acquire(self) -> None:
        """Block until both concurrency and rate limits allow a request.

        Acquires a semaphore slot for concurrency control, then waits for
        a token from the token bucket for rate limiting.
        """
        await self._semaphore.acquire()
        try:
            await self._wait_for_token()
        except BaseException:
            self._semaphore.release()
            raise

    def release(self) -> None:
        """Release a concurrency slot back to the semaphore."""
        self._semaphore.release()

    # ------------------------------------------------------------------
    # Token bucket internals
    # ------------------------------------------------------------------

    async def _wait_for_token(self) -> None:
        """Wait until a token is available in the bucket."""
        while True:
            async with self._bucket_lock:
                self._refill_tokens()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return

            # No token available: sleep for one interval and retry
            await asyncio.sleep(self._token_interval)

    def _refill_tokens(self) -> None:
        """Add tokens based on elapsed time since the last refill."""
        now = time.monotonic()
        elapsed = now - self._last_refill_time
        new_tokens = elapsed * self._requests_per_second
        self._tokens = min(self._max_tokens, self._tokens + new_tokens)
        self._last_refill_time = now
