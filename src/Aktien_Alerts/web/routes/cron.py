"""Scheduled alert check, called by an external cron with a bearer secret."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from Aktien_Alerts.alerts.engine import AlertEngine
from Aktien_Alerts.models.alerts import CycleResult
from Aktien_Alerts.web.deps import get_engine, verify_cron_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


@router.get(
    "/check-alerts",
    response_model=CycleResult,
    dependencies=[Depends(verify_cron_secret)],
)
async def check_alerts(engine: Annotated[AlertEngine, Depends(get_engine)]) -> CycleResult:
    """Evaluate every user's active alerts once."""
    result = await engine.run_evaluation_cycle()
    logger.info(
        "Scheduled check: %d checked, %d triggered",
        result.checked_count,
        result.triggered_count,
    )
    return result
