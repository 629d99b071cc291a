"""Synthetic market data served when no provider API key is configured.

Quotes and profiles come from small fixed tables keyed by well-known symbols;
unknown symbols get a neutral placeholder. Candles are a random walk seeded
from the symbol and range, so the same request always yields the same series.
"""

from __future__ import annotations

import datetime
import zlib
from decimal import Decimal
from typing import Final

import numpy as np

from Aktien_Alerts.models.enums import CandleResolution
from Aktien_Alerts.models.market_data import CandleSeries, CompanyProfile, Quote

# ---------------------------------------------------------------------------
# Demo tables
# ---------------------------------------------------------------------------

# Provider-shaped rows: c=current, pc=previous close, h/l/o=high/low/open.
DEMO_QUOTES: Final[dict[str, dict[str, str]]] = {
    "AAPL": {"c": "228.5", "h": "229", "l": "225", "o": "226", "pc": "226.4"},
    "TSLA": {"c": "248.2", "h": "252", "l": "246", "o": "251", "pc": "251.7"},
    "NVDA": {"c": "135.8", "h": "136", "l": "131", "o": "132", "pc": "131.6"},
    "GOOGL": {"c": "175.3", "h": "176", "l": "173", "o": "174", "pc": "174.1"},
    "MSFT": {"c": "415.5", "h": "416", "l": "412", "o": "413", "pc": "412.7"},
    "AMZN": {"c": "198.2", "h": "200", "l": "197", "o": "199", "pc": "199.3"},
}

DEMO_PROFILES: Final[dict[str, tuple[str, str]]] = {
    "AAPL": ("Apple Inc", "NASDAQ"),
    "TSLA": ("Tesla Inc", "NASDAQ"),
    "NVDA": ("NVIDIA Corporation", "NASDAQ"),
    "GOOGL": ("Alphabet Inc", "NASDAQ"),
    "MSFT": ("Microsoft Corporation", "NASDAQ"),
    "AMZN": ("Amazon.com Inc", "NASDAQ"),
}

PLACEHOLDER_PRICE: Final[Decimal] = Decimal("100")
UNKNOWN_EXCHANGE: Final[str] = "-"

SECONDS_PER_DAY: Final[int] = 86_400
MIN_CANDLE_COUNT: Final[int] = 2
MAX_CANDLE_COUNT: Final[int] = 365
DEFAULT_CANDLE_COUNT: Final[int] = 30  # used when the range is shorter than a day
DEMO_VOLUME: Final[int] = 1_000_000
_DAILY_VOLATILITY: Final[float] = 0.015
_MIN_DEMO_CLOSE: Final[float] = 2.0


def demo_price(symbol: str) -> Decimal:
    """Current demo price for *symbol*, or the placeholder price."""
    row = DEMO_QUOTES.get(symbol)
    return Decimal(row["c"]) if row else PLACEHOLDER_PRICE


def demo_quote(symbol: str, now: datetime.datetime) -> Quote:
    """Quote from the demo table, else a flat quote at 100 with zero change."""
    row = DEMO_QUOTES.get(symbol)
    if row is None:
        return Quote(
            symbol=symbol,
            current=PLACEHOLDER_PRICE,
            previous_close=PLACEHOLDER_PRICE,
            high=PLACEHOLDER_PRICE,
            low=PLACEHOLDER_PRICE,
            open=PLACEHOLDER_PRICE,
            timestamp=now,
        )
    return Quote(
        symbol=symbol,
        current=Decimal(row["c"]),
        previous_close=Decimal(row["pc"]),
        high=Decimal(row["h"]),
        low=Decimal(row["l"]),
        open=Decimal(row["o"]),
        timestamp=now,
    )


def demo_profile(symbol: str) -> CompanyProfile:
    """Profile from the demo table, else the symbol itself with exchange ``-``."""
    name, exchange = DEMO_PROFILES.get(symbol, (symbol, UNKNOWN_EXCHANGE))
    return CompanyProfile(symbol=symbol, name=name, exchange=exchange)


def demo_candle_count(from_ts: int, to_ts: int) -> int:
    """Number of daily candles for a range: whole days clamped to [2, 365]."""
    days = (to_ts - from_ts) // SECONDS_PER_DAY
    if days <= 0:
        days = DEFAULT_CANDLE_COUNT
    return max(MIN_CANDLE_COUNT, min(MAX_CANDLE_COUNT, days))


def demo_candles(
    symbol: str,
    resolution: CandleResolution,
    from_ts: int,
    to_ts: int,
) -> CandleSeries:
    """Daily random walk anchored at the symbol's demo price.

    The generator is seeded from ``symbol`` and ``from_ts``, so identical
    requests produce identical series.
    """
    count = demo_candle_count(from_ts, to_ts)
    anchor = float(demo_price(symbol))

    seed = zlib.crc32(f"{symbol}:{from_ts}".encode())
    rng = np.random.default_rng(seed)
    steps = rng.normal(0.0, anchor * _DAILY_VOLATILITY, size=count)
    steps[0] = 0.0
    closes = np.maximum(anchor + np.cumsum(steps), _MIN_DEMO_CLOSE).round(2)
    opens = np.concatenate(([anchor], closes[:-1])).round(2)
    highs = np.maximum(opens, closes) + 1.0
    lows = np.minimum(opens, closes) - 1.0

    def _to_decimals(values: np.ndarray) -> list[Decimal]:
        return [Decimal(f"{v:.2f}") for v in values]

    return CandleSeries(
        symbol=symbol,
        resolution=resolution,
        open=_to_decimals(opens),
        high=_to_decimals(highs),
        low=_to_decimals(lows),
        close=_to_decimals(closes),
        volume=[DEMO_VOLUME] * count,
        timestamps=[from_ts + i * SECONDS_PER_DAY for i in range(count)],
    )
