"""Market data models: quotes, candle series, company profiles, and snapshots.

All price fields use Decimal (constructed from strings) with custom
serializers to prevent silent float conversion in JSON roundtrips.
"""

import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_serializer,
    field_validator,
    model_validator,
)

from Aktien_Alerts.models.enums import CandleResolution

_CENT = Decimal("0.01")


def round_price(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def compute_change(price: Decimal, previous_close: Decimal | None) -> tuple[Decimal, Decimal]:
    """Return ``(change, change_percent)`` rounded to 2 decimals.

    Both are zero when *previous_close* is zero or missing.
    """
    if not previous_close:
        return Decimal("0.00"), Decimal("0.00")
    change = price - previous_close
    change_percent = change / previous_close * 100
    return round_price(change), round_price(change_percent)


def canonical_symbol(value: str) -> str:
    """Trim and uppercase a ticker symbol."""
    return value.strip().upper()


class Quote(BaseModel):
    """Point-in-time quote for one symbol.

    Frozen because a quote is a snapshot. ``current`` and ``previous_close``
    must both be positive: an instance that exists is a valid quote, so only
    valid quotes can ever be cached or evaluated.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    current: Decimal = Field(gt=0)
    previous_close: Decimal = Field(gt=0)
    high: Decimal
    low: Decimal
    open: Decimal
    timestamp: datetime.datetime

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        return canonical_symbol(value)

    @field_serializer("current", "previous_close", "high", "low", "open")
    def serialize_decimal(self, value: Decimal) -> str:
        """Serialize Decimal fields as strings to preserve precision."""
        return str(value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def change(self) -> Decimal:
        """``current - previous_close``, always derived, never taken from the provider."""
        return compute_change(self.current, self.previous_close)[0]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def change_percent(self) -> Decimal:
        """Change relative to the previous close, in percent."""
        return compute_change(self.current, self.previous_close)[1]


class CandleSeries(BaseModel):
    """Index-aligned OHLCV arrays for one symbol and resolution.

    Timestamps are Unix seconds and must be strictly increasing.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    resolution: CandleResolution
    open: list[Decimal]
    high: list[Decimal]
    low: list[Decimal]
    close: list[Decimal]
    volume: list[int]
    timestamps: list[int]

    @field_serializer("open", "high", "low", "close")
    def serialize_decimals(self, values: list[Decimal]) -> list[str]:
        return [str(v) for v in values]

    @model_validator(mode="after")
    def check_alignment(self) -> Self:
        lengths = {
            len(self.open),
            len(self.high),
            len(self.low),
            len(self.close),
            len(self.volume),
            len(self.timestamps),
        }
        if len(lengths) != 1:
            msg = f"Candle arrays for {self.symbol} have mismatched lengths: {sorted(lengths)}"
            raise ValueError(msg)
        for earlier, later in zip(self.timestamps, self.timestamps[1:], strict=False):
            if later <= earlier:
                msg = f"Candle timestamps for {self.symbol} are not strictly increasing"
                raise ValueError(msg)
        return self

    def __len__(self) -> int:
        return len(self.timestamps)


class CompanyProfile(BaseModel):
    """Company metadata; effectively static within a trading day."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    exchange: str
    industry: str | None = None
    web_url: str | None = None


class StockSnapshot(BaseModel):
    """Quote joined with profile data, as shown on a portfolio dashboard."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    price: Decimal
    change: Decimal
    change_percent: Decimal
    high: Decimal
    low: Decimal
    open: Decimal
    previous_close: Decimal
    industry: str | None = None
    updated_at: datetime.datetime

    @field_serializer(
        "price", "change", "change_percent", "high", "low", "open", "previous_close"
    )
    def serialize_decimal(self, value: Decimal) -> str:
        return str(value)


class MarketStatus(BaseModel):
    """Whether the exchange is open and how often clients should poll."""

    model_config = ConfigDict(frozen=True)

    is_open: bool
    checked_at: datetime.datetime
    next_poll_seconds: int
