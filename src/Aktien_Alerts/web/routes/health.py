"""Health and market-status routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from Aktien_Alerts.config import Settings
from Aktien_Alerts.models.market_data import MarketStatus
from Aktien_Alerts.services.market_hours import market_status
from Aktien_Alerts.web.deps import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Liveness check payload."""

    model_config = ConfigDict(frozen=True)

    status: str
    demo_mode: bool


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Annotated[Settings, Depends(get_settings)]) -> HealthResponse:
    """Report liveness and whether quotes are synthetic."""
    return HealthResponse(status="ok", demo_mode=settings.demo_mode)


@router.get("/market-status", response_model=MarketStatus)
async def get_market_status() -> MarketStatus:
    """Return whether the US market is open and the suggested poll interval."""
    return market_status()
