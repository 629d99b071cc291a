"""Data fetching, caching, and rate limiting services.

Re-exports all public service classes so consumers can import directly:
    from Aktien_Alerts.services import MarketDataCache, MarketDataService
"""

from Aktien_Alerts.services.cache import CacheEntry, MarketDataCache, cache_key
from Aktien_Alerts.services.fetcher import ResilientFetcher
from Aktien_Alerts.services.market_data import MarketDataService
from Aktien_Alerts.services.market_hours import (
    is_market_open,
    market_status,
    poll_interval_seconds,
)
from Aktien_Alerts.services.rate_limiter import RateLimiter

__all__ = [
    # Infrastructure
    "CacheEntry",
    "MarketDataCache",
    "RateLimiter",
    "ResilientFetcher",
    "cache_key",
    # Data services
    "MarketDataService",
    # Market hours
    "is_market_open",
    "market_status",
    "poll_interval_seconds",
]
