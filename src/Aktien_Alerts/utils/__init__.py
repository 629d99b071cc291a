"""Shared utilities: the fetch error hierarchy."""

from Aktien_Alerts.utils.exceptions import (
    DataFetchError,
    DataSourceUnavailableError,
    RateLimitExceededError,
)

__all__ = [
    "DataFetchError",
    "DataSourceUnavailableError",
    "RateLimitExceededError",
]
