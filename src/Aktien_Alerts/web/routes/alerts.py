"""Alert CRUD endpoints, scoped to the caller from the ``X-User-Id`` header.

Delegates persistence to the AlertRepository via dependency injection. A
payload that fits neither alert shape raises ``ValidationError``, which the
middleware maps to HTTP 422.
"""

import logging
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, ConfigDict

from Aktien_Alerts.data.repository import AlertRecord, AlertRepository
from Aktien_Alerts.models.alerts import Alert, parse_alert
from Aktien_Alerts.models.enums import AlertDirection, AlertKind
from Aktien_Alerts.web.deps import get_repository, get_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class AlertCreateRequest(BaseModel):
    """Request body for creating an alert.

    Only the fields of the chosen ``kind`` may be set: ``percent`` and
    ``baseline`` for percent alerts, ``target_price`` for absolute ones.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    direction: AlertDirection
    kind: AlertKind = AlertKind.PERCENT
    percent: Decimal | None = None
    baseline: Decimal | None = None
    target_price: Decimal | None = None


class AlertListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    alerts: list[Alert]


class TriggerResponse(BaseModel):
    """Result of marking an alert triggered; ``transitioned`` is False on repeats."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    transitioned: bool


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    user_id: Annotated[str, Depends(get_user_id)],
    repo: Annotated[AlertRepository, Depends(get_repository)],
) -> AlertListResponse:
    """Return all of the caller's alerts, newest first."""
    alerts = await repo.list_for_user(user_id)
    return AlertListResponse(alerts=alerts)


@router.post("", response_model=Alert, status_code=status.HTTP_201_CREATED)
async def create_alert(
    body: AlertCreateRequest,
    user_id: Annotated[str, Depends(get_user_id)],
    repo: Annotated[AlertRepository, Depends(get_repository)],
) -> AlertRecord:
    """Create a percent or absolute alert for the caller."""
    payload: dict[str, object] = {
        key: value
        for key, value in body.model_dump(exclude={"kind"}).items()
        if value is not None
    }
    payload["kind"] = body.kind.value
    payload["user_id"] = user_id
    alert = parse_alert(payload)
    return await repo.create(alert)


@router.patch("/{alert_id}/triggered", response_model=TriggerResponse)
async def mark_alert_triggered(
    alert_id: str,
    user_id: Annotated[str, Depends(get_user_id)],
    repo: Annotated[AlertRepository, Depends(get_repository)],
) -> TriggerResponse:
    """Mark the caller's alert triggered after a client-side notification.

    Safe to repeat: only the first call transitions the alert.
    """
    transitioned = await repo.mark_triggered(alert_id, user_id=user_id)
    return TriggerResponse(ok=True, transitioned=transitioned)


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alert(
    alert_id: str,
    user_id: Annotated[str, Depends(get_user_id)],
    repo: Annotated[AlertRepository, Depends(get_repository)],
) -> Response:
    """Delete one of the caller's alerts."""
    deleted = await repo.delete(alert_id, user_id=user_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
