"""Market data service wrapping Finnhub for quotes, candles, and company profiles.

Every public call follows the same path: canonicalize the symbol, consult the
``MarketDataCache``, and on a miss either synthesize demo data (no API key
configured) or fetch from Finnhub through the ``ResilientFetcher`` and
validate the payload into a typed Pydantic model. Only validated results are
cached.

Provider failures never raise out of this module: unknown symbols, empty or
malformed payloads, non-OK statuses, rate limiting and network errors all
come back as ``None`` so that callers aggregating many symbols can drop the
failures and keep the rest.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Final

import httpx
from pydantic import ValidationError

from Aktien_Alerts.models.enums import CandleResolution, DataKind
from Aktien_Alerts.models.market_data import (
    CandleSeries,
    CompanyProfile,
    Quote,
    StockSnapshot,
    canonical_symbol,
    round_price,
)
from Aktien_Alerts.services import demo
from Aktien_Alerts.services._helpers import (
    EXTERNAL_CALL_TIMEOUT_SECONDS,
    safe_decimal,
    safe_int,
)
from Aktien_Alerts.services.cache import MarketDataCache, cache_key
from Aktien_Alerts.services.fetcher import ResilientFetcher
from Aktien_Alerts.utils.exceptions import DataFetchError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FINNHUB_BASE_URL: Final[str] = "https://finnhub.io/api/v1"
QUOTE_ENDPOINT: Final[str] = "quote"
CANDLE_ENDPOINT: Final[str] = "stock/candle"
PROFILE_ENDPOINT: Final[str] = "stock/profile2"

CANDLE_STATUS_OK: Final[str] = "ok"
DEFAULT_CANDLE_LOOKBACK_SECONDS: Final[int] = 365 * 86_400

Clock = Callable[[], datetime.datetime]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class MarketDataService:
    """Async market data service backed by Finnhub, with a demo fallback.

    Usage::

        limiter = RateLimiter()
        cache = MarketDataCache()
        fetcher = ResilientFetcher(rate_limiter=limiter)
        service = MarketDataService(cache=cache, fetcher=fetcher, api_key=key)

        quote = await service.get_quote("AAPL")
        candles = await service.get_candles("AAPL", CandleResolution.DAY)
        profile = await service.get_profile("AAPL")
        batch = await service.get_quotes(["AAPL", "MSFT", "NVDA"])

    With ``api_key=None`` no fetcher is needed and all data is synthetic.
    """

    def __init__(
        self,
        cache: MarketDataCache,
        fetcher: ResilientFetcher | None = None,
        *,
        api_key: str | None = None,
        base_url: str = FINNHUB_BASE_URL,
        fetch_timeout: float = EXTERNAL_CALL_TIMEOUT_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        if api_key and fetcher is None:
            msg = "A ResilientFetcher is required when an API key is configured."
            raise ValueError(msg)
        self._cache = cache
        self._fetcher = fetcher
        self._api_key = api_key or None
        self._base_url = base_url.rstrip("/")
        self._fetch_timeout = fetch_timeout
        self._clock: Clock = clock or _utcnow

        if self._api_key is None:
            logger.info("No Finnhub API key configured: serving demo market data.")

    @property
    def demo_mode(self) -> bool:
        """True when no provider credential is configured."""
        return self._api_key is None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_quote(self, symbol: str) -> Quote | None:
        """Return a validated quote for *symbol*, or None if unavailable.

        ``change`` and ``change_percent`` are always derived from the current
        price and previous close, never copied from the provider's fields.
        """
        ticker = canonical_symbol(symbol)
        if not ticker:
            return None
        key = cache_key(DataKind.QUOTE, ticker)
        raw = await self._cached(
            key,
            DataKind.QUOTE,
            lambda: self._load_quote(ticker),
            label=f"Quote({ticker})",
        )
        return Quote.model_validate_json(raw) if raw is not None else None

    async def get_candles(
        self,
        symbol: str,
        resolution: CandleResolution = CandleResolution.DAY,
        from_ts: int | None = None,
        to_ts: int | None = None,
    ) -> CandleSeries | None:
        """Return candles for ``[from_ts, to_ts]`` (Unix seconds), or None.

        ``to_ts`` defaults to now and ``from_ts`` to one year before ``to_ts``.
        An empty series is reported as None.
        """
        ticker = canonical_symbol(symbol)
        if not ticker:
            return None
        to_sec = to_ts if to_ts is not None else int(self._clock().timestamp())
        from_sec = from_ts if from_ts is not None else to_sec - DEFAULT_CANDLE_LOOKBACK_SECONDS
        key = cache_key(DataKind.CANDLE, ticker, resolution.value, from_sec, to_sec)
        raw = await self._cached(
            key,
            DataKind.CANDLE,
            lambda: self._load_candles(ticker, resolution, from_sec, to_sec),
            label=f"Candles({ticker})",
        )
        return CandleSeries.model_validate_json(raw) if raw is not None else None

    async def get_profile(self, symbol: str) -> CompanyProfile | None:
        """Return company metadata for *symbol*, or None if unknown."""
        ticker = canonical_symbol(symbol)
        if not ticker:
            return None
        key = cache_key(DataKind.PROFILE, ticker)
        raw = await self._cached(
            key,
            DataKind.PROFILE,
            lambda: self._load_profile(ticker),
            label=f"Profile({ticker})",
        )
        return CompanyProfile.model_validate_json(raw) if raw is not None else None

    async def get_quotes(self, symbols: list[str]) -> dict[str, Quote | None]:
        """Fetch quotes for many symbols concurrently.

        Each symbol gets ``fetch_timeout`` seconds of in-flight and backoff
        time, however long it queues for the rate limiter. A symbol that runs
        out of time or fails maps to None and never aborts the batch.

        Returns:
            Dict mapping each canonical symbol (first-seen order) to its
            ``Quote`` or None.
        """
        tickers = _unique_symbols(symbols)
        results = await self._gather_isolated(
            [self.get_quote(t) for t in tickers], tickers, label="quote"
        )
        batch: dict[str, Quote | None] = dict(zip(tickers, results, strict=True))

        successes = sum(1 for q in batch.values() if q is not None)
        logger.info(
            "Batch quote fetch complete: %d succeeded, %d missing",
            successes,
            len(batch) - successes,
        )
        return batch

    async def get_stock_snapshots(self, symbols: list[str]) -> list[StockSnapshot]:
        """Join quote and profile per symbol; symbols without a quote are dropped."""
        quotes = await self.get_quotes(symbols)
        available = [s for s, q in quotes.items() if q is not None]
        profiles = await self._gather_isolated(
            [self.get_profile(s) for s in available], available, label="profile"
        )

        snapshots: list[StockSnapshot] = []
        for ticker, profile in zip(available, profiles, strict=True):
            quote = quotes[ticker]
            assert quote is not None  # noqa: S101
            snapshots.append(
                StockSnapshot(
                    symbol=ticker,
                    name=profile.name if profile is not None else ticker,
                    price=round_price(quote.current),
                    change=quote.change,
                    change_percent=quote.change_percent,
                    high=quote.high,
                    low=quote.low,
                    open=quote.open,
                    previous_close=quote.previous_close,
                    industry=profile.industry if profile is not None else None,
                    updated_at=self._clock(),
                )
            )
        return snapshots

    # ------------------------------------------------------------------
    # Cache + failure isolation
    # ------------------------------------------------------------------

    async def _cached(
        self,
        key: str,
        kind: DataKind,
        loader: Callable[[], Awaitable[str | None]],
        *,
        label: str,
    ) -> str | None:
        """Serve from cache or load once, converting provider errors to None."""
        try:
            return await self._cache.get_or_load(key, self._cache.get_ttl(kind), loader)
        except DataFetchError as exc:
            logger.warning("%s unavailable: %s", label, exc)
            return None

    async def _gather_isolated[T](
        self,
        coros: list[Awaitable[T | None]],
        tickers: list[str],
        *,
        label: str,
    ) -> list[T | None]:
        """Run per-symbol coroutines concurrently; one failure never sinks the rest.

        Each symbol is bounded inside the fetcher, where the fetch timeout is
        charged only while a request holds a rate-limiter slot or backs off.
        """
        results = await asyncio.gather(*coros, return_exceptions=True)
        resolved: list[T | None] = []
        for ticker, result in zip(tickers, results, strict=True):
            if isinstance(result, Exception):
                logger.warning("%s fetch for %s failed: %r", label, ticker, result)
                resolved.append(None)
            elif isinstance(result, BaseException):
                raise result
            else:
                resolved.append(result)
        return resolved

    # ------------------------------------------------------------------
    # Loaders (return JSON for the cache, or None for "not found")
    # ------------------------------------------------------------------

    async def _load_quote(self, ticker: str) -> str | None:
        if self._api_key is None:
            return demo.demo_quote(ticker, self._clock()).model_dump_json()

        data = await self._fetch_json(QUOTE_ENDPOINT, {"symbol": ticker}, ticker)
        if data is None:
            return None
        quote = self._parse_quote(ticker, data)
        if quote is None:
            return None
        logger.info("Fetched quote for %s: current=%s", ticker, quote.current)
        return quote.model_dump_json()

    async def _load_candles(
        self,
        ticker: str,
        resolution: CandleResolution,
        from_ts: int,
        to_ts: int,
    ) -> str | None:
        if self._api_key is None:
            series = demo.demo_candles(ticker, resolution, from_ts, to_ts)
            return series.model_dump_json()

        params = {
            "symbol": ticker,
            "resolution": resolution.value,
            "from": str(from_ts),
            "to": str(to_ts),
        }
        data = await self._fetch_json(CANDLE_ENDPOINT, params, ticker)
        if data is None:
            return None
        series = self._parse_candles(ticker, resolution, data)
        if series is None:
            return None
        logger.info("Fetched %d candles for %s", len(series), ticker)
        return series.model_dump_json()

    async def _load_profile(self, ticker: str) -> str | None:
        if self._api_key is None:
            return demo.demo_profile(ticker).model_dump_json()

        data = await self._fetch_json(PROFILE_ENDPOINT, {"symbol": ticker}, ticker)
        if data is None:
            return None
        profile = self._parse_profile(ticker, data)
        if profile is None:
            return None
        logger.info("Fetched profile for %s: %s", ticker, profile.name)
        return profile.model_dump_json()

    async def _fetch_json(
        self,
        endpoint: str,
        params: dict[str, str],
        ticker: str,
    ) -> dict[str, Any] | None:
        """GET an endpoint and decode a JSON object, or None on any non-OK outcome."""
        assert self._fetcher is not None  # noqa: S101
        assert self._api_key is not None  # noqa: S101
        response = await self._fetcher.get(
            f"{self._base_url}/{endpoint}",
            params={**params, "token": self._api_key},
            ticker=ticker,
            budget=self._fetch_timeout,
        )
        if not response.is_success:
            logger.warning("%s(%s) returned HTTP %d", endpoint, ticker, response.status_code)
            return None
        try:
            data = response.json()
        except (ValueError, httpx.DecodingError):
            logger.warning("%s(%s) returned a non-JSON body", endpoint, ticker)
            return None
        if not isinstance(data, dict):
            logger.warning("%s(%s) returned unexpected JSON: %s", endpoint, ticker, type(data))
            return None
        return data

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _parse_quote(self, ticker: str, data: dict[str, Any]) -> Quote | None:
        """Validate a Finnhub quote payload; c and pc must both be positive."""
        timestamp = safe_int(data.get("t"))
        try:
            return Quote(
                symbol=ticker,
                current=safe_decimal(data.get("c")),
                previous_close=safe_decimal(data.get("pc")),
                high=safe_decimal(data.get("h")),
                low=safe_decimal(data.get("l")),
                open=safe_decimal(data.get("o")),
                timestamp=(
                    datetime.datetime.fromtimestamp(timestamp, datetime.UTC)
                    if timestamp > 0
                    else self._clock()
                ),
            )
        except ValidationError:
            logger.warning(
                "Rejecting invalid quote for %s (c=%r, pc=%r)",
                ticker,
                data.get("c"),
                data.get("pc"),
            )
            return None

    @staticmethod
    def _parse_candles(
        ticker: str,
        resolution: CandleResolution,
        data: dict[str, Any],
    ) -> CandleSeries | None:
        """Validate a Finnhub candle payload; empty or misaligned series are None."""
        timestamps = data.get("t")
        if data.get("s") != CANDLE_STATUS_OK or not isinstance(timestamps, list) or not timestamps:
            logger.info("No candle data for %s (status=%r)", ticker, data.get("s"))
            return None

        def _column(name: str) -> list[Any]:
            values = data.get(name)
            return values if isinstance(values, list) else []

        try:
            return CandleSeries(
                symbol=ticker,
                resolution=resolution,
                open=[safe_decimal(v) for v in _column("o")],
                high=[safe_decimal(v) for v in _column("h")],
                low=[safe_decimal(v) for v in _column("l")],
                close=[safe_decimal(v) for v in _column("c")],
                volume=[safe_int(v) for v in _column("v")],
                timestamps=[safe_int(v) for v in timestamps],
            )
        except ValidationError as exc:
            logger.warning("Rejecting malformed candles for %s: %s", ticker, exc)
            return None

    @staticmethod
    def _parse_profile(ticker: str, data: dict[str, Any]) -> CompanyProfile | None:
        """Validate a Finnhub profile payload; a profile without a name is None."""
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            logger.info("No profile found for %s", ticker)
            return None
        industry = data.get("finnhubIndustry")
        web_url = data.get("weburl")
        return CompanyProfile(
            symbol=ticker,
            name=name.strip(),
            exchange=str(data.get("exchange") or demo.UNKNOWN_EXCHANGE),
            industry=industry if isinstance(industry, str) and industry else None,
            web_url=web_url if isinstance(web_url, str) and web_url else None,
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _unique_symbols(symbols: list[str]) -> list[str]:
    """Canonicalize and de-duplicate, keeping first-seen order and dropping blanks."""
    seen: dict[str, None] = {}
    for raw in symbols:
        ticker = canonical_symbol(raw)
        if ticker:
            seen.setdefault(ticker, None)
    return list(seen)
