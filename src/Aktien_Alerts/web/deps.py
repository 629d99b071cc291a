"""Dependency injection providers for FastAPI route handlers.

All shared resources (market data service, alert store, engine) are built
once by the application lifespan and stored on ``app.state.runtime``. Route
handlers never construct these directly; they declare dependencies and
FastAPI injects them.
"""

import hmac
import logging
import re
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Path, Request, status

from Aktien_Alerts.alerts.engine import AlertEngine
from Aktien_Alerts.config import Settings
from Aktien_Alerts.data.repository import AlertRepository
from Aktien_Alerts.runtime import Runtime
from Aktien_Alerts.services.market_data import MarketDataService

logger = logging.getLogger(__name__)

# Ticker symbols: 1-10 uppercase letters or dots (e.g. BRK.B)
_TICKER_PATTERN = re.compile(r"^[A-Z.]{1,10}$")


def get_runtime(request: Request) -> Runtime:
    """Return the components created during application lifespan startup."""
    runtime: Runtime = request.app.state.runtime
    return runtime


def get_settings(runtime: Annotated[Runtime, Depends(get_runtime)]) -> Settings:
    return runtime.settings


def get_market_data_service(
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> MarketDataService:
    """Return the app-wide MarketDataService, so the cache persists across requests."""
    return runtime.market_data


def get_repository(runtime: Annotated[Runtime, Depends(get_runtime)]) -> AlertRepository:
    return runtime.repository


def get_engine(runtime: Annotated[Runtime, Depends(get_runtime)]) -> AlertEngine:
    return runtime.engine


async def get_user_id(
    x_user_id: Annotated[str | None, Header(description="Authenticated user id")] = None,
) -> str:
    """Return the caller's user id from the ``X-User-Id`` header.

    Authentication happens upstream of this service; the header is trusted.
    Raises HTTP 401 when it is missing or blank.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header required",
        )
    return user_id


async def verify_cron_secret(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>`` when a secret is configured."""
    if not settings.cron_secret:
        return
    expected = f"Bearer {settings.cron_secret}"
    if authorization is None or not hmac.compare_digest(authorization, expected):
        logger.warning("Rejected scheduled check: bad or missing bearer token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def validate_ticker_symbol(
    symbol: Annotated[str, Path(description="Ticker symbol (1-10 letters or dots)")],
) -> str:
    """Validate and normalize a ticker symbol path parameter.

    Converts to uppercase and validates against ``^[A-Z.]{1,10}$``.
    Raises HTTP 422 if the symbol is invalid.
    """
    normalized = symbol.strip().upper()
    if not _TICKER_PATTERN.match(normalized):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid ticker symbol: '{symbol}'. Must be 1-10 letters or dots.",
        )
    return normalized
