"""Tests for US market hours and the derived poll cadence.

Covers session boundaries in winter (EST) and summer (EDT), weekends,
naive datetimes (interpreted as UTC), and MarketStatus assembly.
"""

from __future__ import annotations

import datetime

import pytest

from Aktien_Alerts.services.market_hours import (
    POLL_INTERVAL_CLOSED_SECONDS,
    POLL_INTERVAL_OPEN_SECONDS,
    is_market_open,
    market_status,
    poll_interval_seconds,
)


def _utc(year: int, month: int, day: int, hour: int, minute: int) -> datetime.datetime:
    return datetime.datetime(year, month, day, hour, minute, tzinfo=datetime.UTC)


class TestIsMarketOpen:
    @pytest.mark.parametrize(
        ("instant", "expected"),
        [
            (_utc(2025, 1, 15, 14, 29), False),  # 09:29 EST
            (_utc(2025, 1, 15, 14, 30), True),  # 09:30 EST
            (_utc(2025, 1, 15, 20, 59), True),  # 15:59 EST
            (_utc(2025, 1, 15, 21, 0), False),  # 16:00 EST
            (_utc(2025, 7, 16, 13, 30), True),  # 09:30 EDT
            (_utc(2025, 7, 16, 20, 0), False),  # 16:00 EDT
        ],
    )
    def test_session_boundaries(self, instant: datetime.datetime, expected: bool) -> None:
        assert is_market_open(instant) is expected

    def test_weekend_is_closed(self) -> None:
        assert is_market_open(_utc(2025, 1, 18, 16, 0)) is False  # Saturday midday
        assert is_market_open(_utc(2025, 1, 19, 16, 0)) is False  # Sunday midday

    def test_naive_datetime_is_utc(self) -> None:
        assert is_market_open(datetime.datetime(2025, 1, 15, 15, 0)) is True

    def test_other_timezone_is_converted(self) -> None:
        berlin = datetime.timezone(datetime.timedelta(hours=1))
        # 16:00 in Berlin = 10:00 in New York
        assert is_market_open(datetime.datetime(2025, 1, 15, 16, 0, tzinfo=berlin)) is True


class TestPollInterval:
    def test_open_market_polls_fast(self, fixed_now: datetime.datetime) -> None:
        assert poll_interval_seconds(fixed_now) == POLL_INTERVAL_OPEN_SECONDS == 15

    def test_closed_market_polls_slow(self) -> None:
        assert poll_interval_seconds(_utc(2025, 1, 18, 16, 0)) == POLL_INTERVAL_CLOSED_SECONDS == 60


class TestMarketStatus:
    def test_status_fields(self, fixed_now: datetime.datetime) -> None:
        status = market_status(fixed_now)
        assert status.is_open is True
        assert status.checked_at == fixed_now
        assert status.next_poll_seconds == 15

    def test_defaults_to_now(self) -> None:
        status = market_status()
        assert status.checked_at.tzinfo is not None
        assert status.next_poll_seconds in (15, 60)
