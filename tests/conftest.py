"""Shared test fixtures for the Aktien Alerts test suite.

Provides realistic sample instances of the core models so tests don't
need to inline large construction blocks.
"""

import datetime
from decimal import Decimal

import pytest

from Aktien_Alerts.models import (
    AbsoluteAlert,
    AlertDirection,
    CandleResolution,
    CandleSeries,
    CompanyProfile,
    PercentAlert,
    Quote,
)

# Wednesday 2025-01-15 15:30 UTC = 10:30 ET, regular session.
MARKET_OPEN_INSTANT = datetime.datetime(2025, 1, 15, 15, 30, 0, tzinfo=datetime.UTC)


@pytest.fixture()
def fixed_now() -> datetime.datetime:
    """An instant during the regular US trading session."""
    return MARKET_OPEN_INSTANT


@pytest.fixture()
def sample_quote() -> Quote:
    """A valid AAPL quote (same numbers as the demo table)."""
    return Quote(
        symbol="AAPL",
        current=Decimal("228.5"),
        previous_close=Decimal("226.4"),
        high=Decimal("229"),
        low=Decimal("225"),
        open=Decimal("226"),
        timestamp=MARKET_OPEN_INSTANT,
    )


@pytest.fixture()
def sample_candles() -> CandleSeries:
    """Three aligned daily candles for AAPL."""
    return CandleSeries(
        symbol="AAPL",
        resolution=CandleResolution.DAY,
        open=[Decimal("225.00"), Decimal("226.10"), Decimal("227.40")],
        high=[Decimal("226.50"), Decimal("228.00"), Decimal("229.10")],
        low=[Decimal("224.20"), Decimal("225.80"), Decimal("226.90")],
        close=[Decimal("226.10"), Decimal("227.40"), Decimal("228.50")],
        volume=[51_000_000, 48_500_000, 53_200_000],
        timestamps=[1_736_726_400, 1_736_812_800, 1_736_899_200],
    )


@pytest.fixture()
def sample_profile() -> CompanyProfile:
    return CompanyProfile(
        symbol="AAPL",
        name="Apple Inc",
        exchange="NASDAQ NMS - GLOBAL MARKET",
        industry="Technology",
        web_url="https://www.apple.com/",
    )


@pytest.fixture()
def percent_alert() -> PercentAlert:
    """Fires once AAPL is 5% above a 100.00 baseline."""
    return PercentAlert(
        id="pct-aapl-rise",
        user_id="user-1",
        symbol="AAPL",
        direction=AlertDirection.RISE,
        percent=Decimal("5"),
        baseline=Decimal("100"),
        created_at=MARKET_OPEN_INSTANT,
    )


@pytest.fixture()
def absolute_alert() -> AbsoluteAlert:
    """Fires once AAPL reaches 200.00."""
    return AbsoluteAlert(
        id="abs-aapl-rise",
        user_id="user-1",
        symbol="AAPL",
        direction=AlertDirection.RISE,
        target_price=Decimal("200"),
        created_at=MARKET_OPEN_INSTANT,
    )
