"""FastAPI app factory and lifespan wiring."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from Aktien_Alerts.config import Settings, load_settings
from Aktien_Alerts.logging_config import configure_logging
from Aktien_Alerts.runtime import open_runtime
from Aktien_Alerts.web.middleware import RequestLoggingMiddleware, register_exception_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the shared components on startup and close them on shutdown."""
    settings: Settings = app.state.settings
    async with open_runtime(settings) as runtime:
        app.state.runtime = runtime
        logger.info(
            "Aktien Alerts API started (%s)",
            "demo mode" if settings.demo_mode else "live Finnhub data",
        )
        yield
    logger.info("Aktien Alerts API stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Explicit settings (tests); defaults to ``load_settings()``.
    """
    if settings is None:
        configure_logging()
        settings = load_settings()

    app = FastAPI(title="Aktien Alerts", lifespan=_lifespan)
    app.state.settings = settings

    from Aktien_Alerts.web.routes import (
        alerts_router,
        cron_router,
        health_router,
        stocks_router,
    )

    app.include_router(health_router, prefix="/api")
    app.include_router(stocks_router, prefix="/api")
    app.include_router(alerts_router, prefix="/api")
    app.include_router(cron_router, prefix="/api")

    register_exception_handlers(app)
    app.add_middleware(RequestLoggingMiddleware)

    logger.info("Aktien Alerts web app created")
    return app
