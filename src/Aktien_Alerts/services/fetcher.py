"""Resilient HTTP GET against the market-data provider.

Performs a bounded number of retries with linear backoff, treating HTTP 429
differently from network-level failures. Response bodies are never
interpreted here; any status other than 429 is handed back to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Final

import httpx

from Aktien_Alerts.services._helpers import FINNHUB_SOURCE, REQUEST_TIMEOUT_SECONDS
from Aktien_Alerts.services.rate_limiter import RateLimiter
from Aktien_Alerts.utils.exceptions import (
    DataSourceUnavailableError,
    RateLimitExceededError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_RETRIES: Final[int] = 2  # 3 attempts in total
RATE_LIMIT_BACKOFF_SECONDS: Final[float] = 1.0
NETWORK_BACKOFF_SECONDS: Final[float] = 0.5
HTTP_TOO_MANY_REQUESTS: Final[int] = 429


class _Budget:
    """Seconds a request may spend in flight or backing off.

    Time spent queued for a rate-limiter slot is not charged, so a symbol far
    back in a large batch still gets its full allowance once it is served.
    ``None`` means unbounded.
    """

    def __init__(self, seconds: float | None) -> None:
        self.remaining = seconds

    def cap(self, timeout: float) -> float:
        if self.remaining is None:
            return timeout
        return max(0.0, min(timeout, self.remaining))

    def charge(self, seconds: float) -> None:
        if self.remaining is not None:
            self.remaining -= seconds

    def covers(self, seconds: float) -> bool:
        return self.remaining is None or self.remaining > seconds


class ResilientFetcher:
    """GET with retries, rate-limit backoff, and a shared request gate.

    On HTTP 429 waits ``1.0s * attempt`` before retrying; on transport
    errors and timeouts waits ``0.5s * attempt``. Each attempt is bounded by
    ``request_timeout``. Holds no per-request state, so one instance can
    serve any number of concurrent callers.

    Usage::

        fetcher = ResilientFetcher(rate_limiter=RateLimiter())
        try:
            response = await fetcher.get(
                "https://finnhub.io/api/v1/quote",
                params={"symbol": "AAPL", "token": api_key},
                ticker="AAPL",
                budget=12.0,
            )
        finally:
            await fetcher.aclose()
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        *,
        client: httpx.AsyncClient | None = None,
        max_retries: int = MAX_RETRIES,
        rate_limit_backoff: float = RATE_LIMIT_BACKOFF_SECONDS,
        network_backoff: float = NETWORK_BACKOFF_SECONDS,
        request_timeout: float = REQUEST_TIMEOUT_SECONDS,
        source: str = FINNHUB_SOURCE,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=5.0, read=request_timeout, write=10.0, pool=5.0),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        self._max_retries = max_retries
        self._rate_limit_backoff = rate_limit_backoff
        self._network_backoff = network_backoff
        self._request_timeout = request_timeout
        self._source = source

    async def aclose(self) -> None:
        """Close the httpx client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def get(
        self,
        url: str,
        *,
        params: dict[str, str] | None = None,
        ticker: str,
        budget: float | None = None,
    ) -> httpx.Response:
        """Issue a GET, retrying on 429 and on network failures.

        Args:
            url: Endpoint URL (without the query string).
            params: Query parameters; may contain the API token, which is
                never logged.
            ticker: Symbol the request is for, used for logs and errors.
            budget: Total seconds the request may spend in flight or in
                backoff across all attempts. Waiting for the rate limiter
                does not count. None leaves only the per-attempt timeout.

        Returns:
            The first response whose status is not 429.

        Raises:
            RateLimitExceededError: Every attempt was answered with 429, or
                the budget ran out while rate limited.
            DataSourceUnavailableError: The last attempt failed at the
                network level (timeout, DNS, connection reset).
        """
        endpoint = url.rsplit("/", 1)[-1]
        attempts = self._max_retries + 1
        allowance = _Budget(budget)

        for attempt in range(1, attempts + 1):
            try:
                response = await self._attempt(url, params, allowance)
            except (httpx.TransportError, TimeoutError) as exc:
                delay = self._network_backoff * attempt
                if attempt >= attempts or not allowance.covers(delay):
                    logger.error(
                        "%s(%s) failed after %d attempt(s): %r",
                        endpoint,
                        ticker,
                        attempt,
                        exc,
                    )
                    raise DataSourceUnavailableError(
                        f"Network error fetching {endpoint} for {ticker}: {exc!r}",
                        ticker=ticker,
                        source=self._source,
                        attempts=attempt,
                    ) from exc
                logger.warning(
                    "%s(%s) network error (attempt %d/%d), retrying in %.1fs: %r",
                    endpoint,
                    ticker,
                    attempt,
                    attempts,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
                allowance.charge(delay)
                continue

            if response.status_code != HTTP_TOO_MANY_REQUESTS:
                return response

            delay = self._rate_limit_backoff * attempt
            if attempt >= attempts or not allowance.covers(delay):
                logger.error(
                    "%s(%s) still rate limited after %d attempt(s)",
                    endpoint,
                    ticker,
                    attempt,
                )
                raise RateLimitExceededError(
                    f"Rate limited fetching {endpoint} for {ticker}",
                    ticker=ticker,
                    source=self._source,
                    http_status=HTTP_TOO_MANY_REQUESTS,
                    attempts=attempt,
                )
            logger.warning(
                "%s(%s) rate limited (attempt %d/%d), retrying in %.1fs",
                endpoint,
                ticker,
                attempt,
                attempts,
                delay,
            )
            await asyncio.sleep(delay)
            allowance.charge(delay)

        # Unreachable: every iteration returns, raises, or continues.
        msg = "retry loop exited without a result"
        raise AssertionError(msg)

    async def _attempt(
        self,
        url: str,
        params: dict[str, str] | None,
        allowance: _Budget,
    ) -> httpx.Response:
        """One gated request; the limiter slot is held only while it is in flight."""
        await self._rate_limiter.acquire()
        started = time.monotonic()
        try:
            return await asyncio.wait_for(
                self._client.get(url, params=params),
                timeout=allowance.cap(self._request_timeout),
            )
        finally:
            allowance.charge(time.monotonic() - started)
            self._rate_limiter.release()
