"""StrEnum types for the alerts domain.

All enums use Python 3.13+ StrEnum. Values are lowercase strings, except
candle resolutions which mirror the provider's own codes.
Use enum members in business logic, never raw strings.
"""

from enum import StrEnum


class AlertDirection(StrEnum):
    """Which way the price has to move for an alert to fire."""

    RISE = "rise"
    DROP = "drop"


class AlertKind(StrEnum):
    """How the alert threshold is expressed."""

    PERCENT = "percent"
    ABSOLUTE = "absolute"


class CandleResolution(StrEnum):
    """Candle resolution codes accepted by the provider."""

    MINUTE = "1"
    FIVE_MINUTES = "5"
    FIFTEEN_MINUTES = "15"
    THIRTY_MINUTES = "30"
    HOUR = "60"
    DAY = "D"
    WEEK = "W"
    MONTH = "M"


class DataKind(StrEnum):
    """Kinds of cached market data, each with its own TTL."""

    QUOTE = "quote"
    CANDLE = "candle"
    PROFILE = "profile"


class ChartPeriod(StrEnum):
    """Look-back windows offered for daily price charts."""

    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"
    YEAR = "1y"

    @property
    def days(self) -> int:
        match self:
            case ChartPeriod.WEEK:
                return 7
            case ChartPeriod.MONTH:
                return 30
            case ChartPeriod.QUARTER:
                return 90
            case ChartPeriod.YEAR:
                return 365
