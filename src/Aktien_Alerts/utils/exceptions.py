"""Failures raised by the Finnhub fetcher once its retries are spent.

"Not found" is not an exception here: the market-data adapter answers
``None`` for unknown symbols and invalid payloads. These errors never leave a
single symbol's fetch either; ``MarketDataService`` logs them and reports no
data for that symbol this cycle.
"""


class DataFetchError(Exception):
    """A request for one symbol gave up.

    Attributes:
        ticker: Symbol the request was for.
        source: Provider name, e.g. ``"finnhub"``.
        http_status: Last HTTP status seen, if the failure was an HTTP answer.
        attempts: Requests made before giving up.
    """

    def __init__(
        self,
        message: str,
        *,
        ticker: str,
        source: str,
        http_status: int | None = None,
        attempts: int = 1,
    ) -> None:
        self.ticker = ticker
        self.source = source
        self.http_status = http_status
        self.attempts = attempts
        super().__init__(message)


class DataSourceUnavailableError(DataFetchError):
    """Transport errors or timeouts on every attempt the budget allowed."""


class RateLimitExceededError(DataFetchError):
    """HTTP 429 on every attempt the budget allowed."""
