"""Component wiring shared by the web app and the CLI.

``open_runtime`` builds the long-lived objects (database, cache, rate
limiter, fetcher, market data service, alert store, notifier, engine) from
``Settings`` and tears them down in reverse order on exit.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from Aktien_Alerts.alerts.engine import AlertEngine
from Aktien_Alerts.config import Settings
from Aktien_Alerts.data.database import Database
from Aktien_Alerts.data.repository import AlertRepository
from Aktien_Alerts.notify.notifier import LoggingNotifier, Notifier, WebhookNotifier
from Aktien_Alerts.services.cache import MarketDataCache
from Aktien_Alerts.services.fetcher import ResilientFetcher
from Aktien_Alerts.services.market_data import MarketDataService
from Aktien_Alerts.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Runtime:
    """The wired components for one process."""

    settings: Settings
    database: Database
    cache: MarketDataCache
    market_data: MarketDataService
    repository: AlertRepository
    notifier: Notifier
    engine: AlertEngine


@asynccontextmanager
async def open_runtime(settings: Settings) -> AsyncIterator[Runtime]:
    """Connect the database and build every service; close them all on exit."""
    database = Database(settings.db_path)
    await database.connect()

    fetcher: ResilientFetcher | None = None
    if not settings.demo_mode:
        fetcher = ResilientFetcher(
            RateLimiter(
                max_concurrent=settings.max_concurrent,
                requests_per_second=settings.requests_per_second,
            ),
            request_timeout=settings.request_timeout_seconds,
        )

    notifier: Notifier
    if settings.webhook_url:
        notifier = WebhookNotifier(settings.webhook_url)
    else:
        notifier = LoggingNotifier()

    cache = MarketDataCache()
    market_data = MarketDataService(
        cache,
        fetcher,
        api_key=settings.finnhub_api_key,
        base_url=settings.finnhub_base_url,
        fetch_timeout=settings.fetch_timeout_seconds,
    )
    repository = AlertRepository(database)
    engine = AlertEngine(store=repository, market_data=market_data, notifier=notifier)

    try:
        yield Runtime(
            settings=settings,
            database=database,
            cache=cache,
            market_data=market_data,
            repository=repository,
            notifier=notifier,
            engine=engine,
        )
    finally:
        await engine.drain()
        if isinstance(notifier, WebhookNotifier):
            await notifier.aclose()
        if fetcher is not None:
            await fetcher.aclose()
        await database.close()
        logger.debug("Runtime closed")
