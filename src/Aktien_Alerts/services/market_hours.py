"""US equity market hours and the polling cadence derived from them.

Pure functions of a wall-clock instant; nothing here performs I/O. The
engine itself never consults market hours: callers use them to choose how
often to poll. Holidays are not accounted for.
"""

from __future__ import annotations

import datetime
from typing import Final
from zoneinfo import ZoneInfo

from Aktien_Alerts.models.market_data import MarketStatus

ET_TIMEZONE: Final[ZoneInfo] = ZoneInfo("America/New_York")

MARKET_OPEN_MINUTE_OF_DAY: Final[int] = 9 * 60 + 30  # 570
MARKET_CLOSE_MINUTE_OF_DAY: Final[int] = 16 * 60  # 960

POLL_INTERVAL_OPEN_SECONDS: Final[int] = 15
POLL_INTERVAL_CLOSED_SECONDS: Final[int] = 60


def _resolve(now: datetime.datetime | None) -> datetime.datetime:
    if now is None:
        return datetime.datetime.now(datetime.UTC)
    if now.tzinfo is None:
        return now.replace(tzinfo=datetime.UTC)
    return now


def is_market_open(now: datetime.datetime | None = None) -> bool:
    """Return True if US equity markets are open at *now*.

    Market hours: 9:30 AM - 4:00 PM ET, Monday through Friday. Naive
    datetimes are interpreted as UTC.
    """
    now_et = _resolve(now).astimezone(ET_TIMEZONE)

    if now_et.weekday() >= 5:  # Saturday or Sunday
        return False

    minutes = now_et.hour * 60 + now_et.minute
    return MARKET_OPEN_MINUTE_OF_DAY <= minutes < MARKET_CLOSE_MINUTE_OF_DAY


def poll_interval_seconds(now: datetime.datetime | None = None) -> int:
    """Seconds a client should wait before its next poll."""
    if is_market_open(now):
        return POLL_INTERVAL_OPEN_SECONDS
    return POLL_INTERVAL_CLOSED_SECONDS


def market_status(now: datetime.datetime | None = None) -> MarketStatus:
    """Snapshot of market state for API and CLI consumers."""
    resolved = _resolve(now)
    return MarketStatus(
        is_open=is_market_open(resolved),
        checked_at=resolved,
        next_poll_seconds=poll_interval_seconds(resolved),
    )
