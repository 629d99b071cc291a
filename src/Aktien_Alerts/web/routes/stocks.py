"""Stock quote and chart routes.

GET /api/stocks?symbols=AAPL,MSFT        -- Quote + profile snapshots.
GET /api/stocks/{symbol}/candles         -- Daily closes for a chart period.
"""

import datetime
import logging
from decimal import Decimal
from typing import Annotated, Final

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, field_serializer

from Aktien_Alerts.models.enums import CandleResolution, ChartPeriod
from Aktien_Alerts.models.market_data import StockSnapshot
from Aktien_Alerts.services.market_data import MarketDataService
from Aktien_Alerts.services.market_hours import is_market_open
from Aktien_Alerts.web.deps import get_market_data_service, validate_ticker_symbol

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stocks", tags=["stocks"])

DEFAULT_SYMBOLS: Final[tuple[str, ...]] = ("AAPL", "TSLA", "NVDA")
MAX_SYMBOLS: Final[int] = 25

# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class StocksResponse(BaseModel):
    """Snapshots for the requested symbols; symbols without a quote are omitted."""

    model_config = ConfigDict(frozen=True)

    stocks: list[StockSnapshot]
    market_open: bool
    timestamp: datetime.datetime


class ChartResponse(BaseModel):
    """Chart series: one label and one close per trading day."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    period: ChartPeriod
    labels: list[str]
    values: list[Decimal]

    @field_serializer("values")
    def serialize_values(self, values: list[Decimal]) -> list[str]:
        return [str(v) for v in values]


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


@router.get("", response_model=StocksResponse)
async def list_stocks(
    market_service: Annotated[MarketDataService, Depends(get_market_data_service)],
    symbols: Annotated[str, Query(description="Comma-separated ticker symbols")] = "",
) -> StocksResponse:
    """Return quote + profile snapshots for *symbols* (defaults to AAPL, TSLA, NVDA)."""
    requested = [s for s in (part.strip().upper() for part in symbols.split(",")) if s]
    tickers = requested[:MAX_SYMBOLS] or list(DEFAULT_SYMBOLS)
    snapshots = await market_service.get_stock_snapshots(tickers)
    logger.info("Stocks: %d of %d symbols quoted", len(snapshots), len(tickers))
    return StocksResponse(
        stocks=snapshots,
        market_open=is_market_open(),
        timestamp=datetime.datetime.now(datetime.UTC),
    )


@router.get("/{symbol}/candles", response_model=ChartResponse)
async def get_chart(
    symbol: Annotated[str, Depends(validate_ticker_symbol)],
    market_service: Annotated[MarketDataService, Depends(get_market_data_service)],
    period: ChartPeriod = ChartPeriod.WEEK,
) -> ChartResponse:
    """Return daily closes for the period; an unavailable series is empty."""
    to_ts = int(datetime.datetime.now(datetime.UTC).timestamp())
    from_ts = to_ts - period.days * 86_400
    series = await market_service.get_candles(symbol, CandleResolution.DAY, from_ts, to_ts)
    if series is None:
        return ChartResponse(symbol=symbol, period=period, labels=[], values=[])

    labels = [_day_label(ts) for ts in series.timestamps]
    return ChartResponse(symbol=symbol, period=period, labels=labels, values=list(series.close))


def _day_label(timestamp: int) -> str:
    """Short chart label, e.g. ``Mar 7``."""
    day = datetime.datetime.fromtimestamp(timestamp, datetime.UTC)
    return f"{day:%b} {day.day}"
