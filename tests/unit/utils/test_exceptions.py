"""Tests for the fetch error hierarchy."""

import pytest

from Aktien_Alerts.utils.exceptions import (
    DataFetchError,
    DataSourceUnavailableError,
    RateLimitExceededError,
)


class TestDataFetchError:
    def test_carries_request_context(self) -> None:
        exc = DataFetchError(
            "quote(AAPL) failed",
            ticker="AAPL",
            source="finnhub",
            http_status=503,
            attempts=3,
        )
        assert (exc.ticker, exc.source, exc.http_status, exc.attempts) == (
            "AAPL",
            "finnhub",
            503,
            3,
        )
        assert str(exc) == "quote(AAPL) failed"

    def test_defaults_to_single_attempt_without_status(self) -> None:
        exc = DataSourceUnavailableError("timed out", ticker="AAPL", source="finnhub")
        assert exc.http_status is None
        assert exc.attempts == 1


@pytest.mark.parametrize("exc_type", [DataSourceUnavailableError, RateLimitExceededError])
def test_one_handler_catches_every_fetch_failure(exc_type: type[DataFetchError]) -> None:
    with pytest.raises(DataFetchError) as info:
        raise exc_type("gave up", ticker="TSLA", source="finnhub", http_status=429)
    assert isinstance(info.value, exc_type)
    assert info.value.ticker == "TSLA"
