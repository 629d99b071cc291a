"""Tests for MarketDataService: demo mode, Finnhub decoding, caching, batching.

Live-mode tests run against ``httpx.MockTransport``; nothing touches the
network. Covers:
- Demo quotes/profiles/candles when no API key is configured
- Invalid quotes (c or pc not positive) are rejected and never cached
- Non-OK statuses, non-JSON bodies and exhausted retries become None
- Candle "no_data" and misaligned payloads become None
- Concurrent requests for one symbol share one upstream call
- A batch with one slow symbol returns the rest and reports the slow one as None
- A hung attempt is retried inside the symbol budget
- Waiting on the rate limiter does not starve late symbols in a batch
- The API token never appears in log output
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any

import httpx
import pytest

from Aktien_Alerts.models.enums import CandleResolution
from Aktien_Alerts.services.cache import MarketDataCache
from Aktien_Alerts.services.fetcher import ResilientFetcher
from Aktien_Alerts.services.market_data import MarketDataService
from Aktien_Alerts.services.rate_limiter import FINNHUB_MAX_CONCURRENT, RateLimiter

_TOKEN = "secret-token-123"
_NOW = datetime.datetime(2025, 1, 15, 15, 30, 0, tzinfo=datetime.UTC)

Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


def _quote_payload(c: Any = 228.5, pc: Any = 226.4) -> dict[str, Any]:
    return {"c": c, "d": 999, "dp": 999, "h": 229.0, "l": 225.0, "o": 226.0, "pc": pc, "t": 1736955000}


def _live_service(
    handler: Handler,
    *,
    cache: MarketDataCache | None = None,
    fetch_timeout: float = 5.0,
    request_timeout: float = 5.0,
    limiter: RateLimiter | None = None,
) -> MarketDataService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    fetcher = ResilientFetcher(
        limiter or RateLimiter(max_concurrent=10, requests_per_second=1000.0),
        client=client,
        request_timeout=request_timeout,
        rate_limit_backoff=0.0,
        network_backoff=0.0,
    )
    return MarketDataService(
        cache or MarketDataCache(),
        fetcher,
        api_key=_TOKEN,
        base_url="https://finnhub.test/api/v1",
        fetch_timeout=fetch_timeout,
        clock=lambda: _NOW,
    )


@pytest.fixture()
def demo_service() -> MarketDataService:
    return MarketDataService(MarketDataCache(), clock=lambda: _NOW)


# ---------------------------------------------------------------------------
# Demo mode
# ---------------------------------------------------------------------------


class TestDemoMode:
    """Synthetic data served when no API key is configured."""

    def test_demo_mode_flag(self, demo_service: MarketDataService) -> None:
        assert demo_service.demo_mode is True

    @pytest.mark.asyncio()
    async def test_demo_aapl_quote(self, demo_service: MarketDataService) -> None:
        quote = await demo_service.get_quote(" aapl ")
        assert quote is not None
        assert quote.symbol == "AAPL"
        assert quote.current == Decimal("228.5")
        assert quote.previous_close == Decimal("226.4")
        assert quote.change == Decimal("2.10")
        assert quote.change_percent == Decimal("0.93")

    @pytest.mark.asyncio()
    async def test_unknown_symbol_gets_placeholder(self, demo_service: MarketDataService) -> None:
        quote = await demo_service.get_quote("ZZZZ")
        assert quote is not None
        assert quote.current == Decimal("100")
        assert quote.change == Decimal("0.00")

    @pytest.mark.asyncio()
    async def test_blank_symbol_is_none(self, demo_service: MarketDataService) -> None:
        assert await demo_service.get_quote("   ") is None

    @pytest.mark.asyncio()
    async def test_demo_profile_known_and_unknown(self, demo_service: MarketDataService) -> None:
        apple = await demo_service.get_profile("AAPL")
        unknown = await demo_service.get_profile("ZZZZ")
        assert apple is not None and apple.name == "Apple Inc"
        assert unknown is not None
        assert unknown.name == "ZZZZ"
        assert unknown.exchange == "-"

    @pytest.mark.asyncio()
    async def test_demo_candles_default_range(self, demo_service: MarketDataService) -> None:
        series = await demo_service.get_candles("NVDA")
        assert series is not None
        assert series.resolution is CandleResolution.DAY
        assert len(series) == 365

    @pytest.mark.asyncio()
    async def test_demo_data_is_cached(self) -> None:
        cache = MarketDataCache(clock=lambda: _NOW)
        service = MarketDataService(cache, clock=lambda: _NOW)
        await service.get_quote("AAPL")
        assert cache.get("finnhub:quote:AAPL") is not None

    def test_api_key_requires_fetcher(self) -> None:
        with pytest.raises(ValueError, match="ResilientFetcher"):
            MarketDataService(MarketDataCache(), api_key="key")


# ---------------------------------------------------------------------------
# Live mode: quotes
# ---------------------------------------------------------------------------


class TestLiveQuote:
    @pytest.mark.asyncio()
    async def test_valid_quote_recomputes_change(self) -> None:
        """The provider's d/dp fields are ignored; change is derived from c and pc."""
        service = _live_service(lambda request: httpx.Response(200, json=_quote_payload()))
        quote = await service.get_quote("AAPL")
        assert quote is not None
        assert quote.change == Decimal("2.10")
        assert quote.change_percent == Decimal("0.93")
        assert quote.timestamp == datetime.datetime.fromtimestamp(1736955000, datetime.UTC)

    @pytest.mark.asyncio()
    async def test_request_carries_symbol_and_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_quote_payload())

        await _live_service(handler).get_quote("msft")
        assert seen[0].url.path == "/api/v1/quote"
        assert seen[0].url.params["symbol"] == "MSFT"
        assert seen[0].url.params["token"] == _TOKEN

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "payload",
        [
            _quote_payload(c=0, pc=0),  # Finnhub's answer for unknown symbols
            _quote_payload(c=0),
            _quote_payload(pc=0),
            _quote_payload(c=-5),
            _quote_payload(c=None),
            _quote_payload(c="abc"),
            {},
        ],
    )
    async def test_invalid_quote_is_none_and_not_cached(self, payload: dict[str, Any]) -> None:
        cache = MarketDataCache()
        service = _live_service(lambda request: httpx.Response(200, json=payload), cache=cache)
        assert await service.get_quote("AAPL") is None
        assert len(cache) == 0

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("status", [401, 403, 404, 500])
    async def test_error_status_is_none(self, status: int) -> None:
        service = _live_service(lambda request: httpx.Response(status, json={"error": "x"}))
        assert await service.get_quote("AAPL") is None

    @pytest.mark.asyncio()
    async def test_non_json_body_is_none(self) -> None:
        service = _live_service(lambda request: httpx.Response(200, text="<html>oops</html>"))
        assert await service.get_quote("AAPL") is None

    @pytest.mark.asyncio()
    async def test_non_object_json_is_none(self) -> None:
        service = _live_service(lambda request: httpx.Response(200, json=[1, 2, 3]))
        assert await service.get_quote("AAPL") is None

    @pytest.mark.asyncio()
    async def test_exhausted_rate_limit_is_none(self) -> None:
        service = _live_service(lambda request: httpx.Response(429))
        assert await service.get_quote("AAPL") is None

    @pytest.mark.asyncio()
    async def test_network_failure_is_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable")

        assert await _live_service(handler).get_quote("AAPL") is None

    @pytest.mark.asyncio()
    async def test_second_call_is_served_from_cache(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json=_quote_payload())

        service = _live_service(handler)
        await service.get_quote("AAPL")
        await service.get_quote("aapl")
        assert calls == 1

    @pytest.mark.asyncio()
    async def test_concurrent_requests_coalesce(self) -> None:
        calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.02)
            return httpx.Response(200, json=_quote_payload())

        service = _live_service(handler)
        results = await asyncio.gather(*(service.get_quote("AAPL") for _ in range(4)))
        assert all(q is not None for q in results)
        assert calls == 1

    @pytest.mark.asyncio()
    async def test_token_never_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        service = _live_service(lambda request: httpx.Response(429))
        with caplog.at_level(logging.DEBUG, logger="Aktien_Alerts"):
            await service.get_quote("AAPL")
        assert caplog.records
        assert _TOKEN not in caplog.text


# ---------------------------------------------------------------------------
# Live mode: candles and profiles
# ---------------------------------------------------------------------------


class TestLiveCandles:
    @pytest.mark.asyncio()
    async def test_ok_payload(self) -> None:
        payload = {
            "s": "ok",
            "t": [1736726400, 1736812800],
            "o": [225, 226.1],
            "h": [226.5, 228],
            "l": [224.2, 225.8],
            "c": [226.1, 227.4],
            "v": [51000000, 48500000],
        }
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=payload)

        series = await _live_service(handler).get_candles(
            "AAPL", CandleResolution.DAY, 1736700000, 1736900000
        )
        assert series is not None
        assert series.close == [Decimal("226.1"), Decimal("227.4")]
        assert seen[0].url.path == "/api/v1/stock/candle"
        assert seen[0].url.params["resolution"] == "D"
        assert seen[0].url.params["from"] == "1736700000"

    @pytest.mark.asyncio()
    async def test_no_data_is_none(self) -> None:
        service = _live_service(lambda request: httpx.Response(200, json={"s": "no_data"}))
        assert await service.get_candles("AAPL", from_ts=1, to_ts=2) is None

    @pytest.mark.asyncio()
    async def test_misaligned_arrays_are_none(self) -> None:
        payload = {"s": "ok", "t": [1, 2], "o": [1], "h": [1, 2], "l": [1, 2], "c": [1, 2], "v": [1, 2]}
        service = _live_service(lambda request: httpx.Response(200, json=payload))
        assert await service.get_candles("AAPL", from_ts=1, to_ts=2) is None


class TestLiveProfile:
    @pytest.mark.asyncio()
    async def test_profile_fields_are_mapped(self) -> None:
        payload = {
            "name": "Apple Inc",
            "exchange": "NASDAQ NMS - GLOBAL MARKET",
            "finnhubIndustry": "Technology",
            "weburl": "https://www.apple.com/",
        }
        service = _live_service(lambda request: httpx.Response(200, json=payload))
        profile = await service.get_profile("AAPL")
        assert profile is not None
        assert profile.industry == "Technology"
        assert profile.web_url == "https://www.apple.com/"

    @pytest.mark.asyncio()
    async def test_empty_profile_is_none(self) -> None:
        service = _live_service(lambda request: httpx.Response(200, json={}))
        assert await service.get_profile("ZZZZ") is None


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------


class TestBatch:
    @pytest.mark.asyncio()
    async def test_one_slow_symbol_does_not_block_the_batch(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["symbol"] == "SLOW":
                await asyncio.sleep(5)
            return httpx.Response(200, json=_quote_payload())

        service = _live_service(handler, fetch_timeout=0.2)
        batch = await service.get_quotes(["AAPL", "MSFT", "SLOW", "NVDA", "TSLA"])

        assert list(batch) == ["AAPL", "MSFT", "SLOW", "NVDA", "TSLA"]
        assert batch["SLOW"] is None
        assert sum(1 for q in batch.values() if q is not None) == 4

    @pytest.mark.asyncio()
    async def test_hung_attempt_is_retried_within_the_symbol_budget(self) -> None:
        calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(5)
            return httpx.Response(200, json=_quote_payload())

        service = _live_service(handler, fetch_timeout=1.0, request_timeout=0.1)
        batch = await service.get_quotes(["AAPL"])

        assert batch["AAPL"] is not None
        assert calls == 2

    @pytest.mark.asyncio()
    async def test_queue_time_does_not_starve_late_symbols(self) -> None:
        """Twenty symbols behind a 5-slot bucket all get quoted.

        The last symbols wait far longer than ``fetch_timeout`` for a token;
        only time in flight counts against them.
        """
        tickers = [f"S{i:02d}" for i in range(20)]
        served: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            served.append(request.url.params["symbol"])
            return httpx.Response(200, json=_quote_payload())

        service = _live_service(
            handler,
            fetch_timeout=0.25,
            limiter=RateLimiter(max_concurrent=FINNHUB_MAX_CONCURRENT, requests_per_second=20.0),
        )
        batch = await service.get_quotes(tickers)

        assert [s for s, q in batch.items() if q is None] == []
        assert sorted(served) == tickers

    @pytest.mark.asyncio()
    async def test_duplicates_are_merged(self, demo_service: MarketDataService) -> None:
        batch = await demo_service.get_quotes(["aapl", "AAPL", " msft", ""])
        assert list(batch) == ["AAPL", "MSFT"]

    @pytest.mark.asyncio()
    async def test_snapshots_drop_missing_quotes(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            symbol = request.url.params["symbol"]
            if request.url.path.endswith("/quote"):
                if symbol == "GONE":
                    return httpx.Response(200, json=_quote_payload(c=0, pc=0))
                return httpx.Response(200, json=_quote_payload())
            if symbol == "AAPL":
                return httpx.Response(200, json={"name": "Apple Inc", "finnhubIndustry": "Technology"})
            return httpx.Response(200, json={})

        snapshots = await _live_service(handler).get_stock_snapshots(["AAPL", "GONE", "MSFT"])

        assert [s.symbol for s in snapshots] == ["AAPL", "MSFT"]
        apple, msft = snapshots
        assert apple.name == "Apple Inc"
        assert apple.industry == "Technology"
        assert apple.price == Decimal("228.50")
        assert msft.name == "MSFT"
        assert msft.updated_at == _NOW
