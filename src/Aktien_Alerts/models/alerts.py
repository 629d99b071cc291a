"""Alert models: the percent/absolute alert union and evaluation I/O.

An alert is exactly one of two shapes, selected by ``kind``:

* ``PercentAlert`` -- fires when the price moves ``percent`` away from ``baseline``.
* ``AbsoluteAlert`` -- fires when the price crosses ``target_price``.

``extra="forbid"`` makes each shape reject the other's payload fields, so an
absolute alert carrying a baseline (or a percent alert without one) never
gets past construction.
"""

import datetime
import uuid
from decimal import Decimal
from typing import Annotated, Literal, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_serializer,
    field_validator,
    model_validator,
)

from Aktien_Alerts.models.enums import AlertDirection
from Aktien_Alerts.models.market_data import canonical_symbol


def _new_alert_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class _AlertBase(BaseModel):
    """Fields shared by both alert shapes.

    Frozen: once stored, an alert only changes through the store's
    ``mark_triggered`` transition, which yields a new record.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=_new_alert_id)
    user_id: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    direction: AlertDirection
    triggered: bool = False
    triggered_at: datetime.datetime | None = None
    created_at: datetime.datetime = Field(default_factory=_utcnow)

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        symbol = canonical_symbol(value)
        if not symbol:
            msg = "symbol must not be blank"
            raise ValueError(msg)
        return symbol

    @model_validator(mode="after")
    def check_trigger_state(self) -> Self:
        if self.triggered_at is not None and not self.triggered:
            msg = "triggered_at is only allowed on triggered alerts"
            raise ValueError(msg)
        return self


class PercentAlert(_AlertBase):
    """Fires on a move of at least ``percent`` percent away from ``baseline``."""

    kind: Literal["percent"] = "percent"
    percent: Decimal = Field(gt=0)
    baseline: Decimal = Field(gt=0)

    @field_serializer("percent", "baseline")
    def serialize_decimal(self, value: Decimal) -> str:
        return str(value)


class AbsoluteAlert(_AlertBase):
    """Fires when the price reaches ``target_price`` in the alert's direction."""

    kind: Literal["absolute"] = "absolute"
    target_price: Decimal = Field(gt=0)

    @field_serializer("target_price")
    def serialize_decimal(self, value: Decimal) -> str:
        return str(value)


Alert = Annotated[PercentAlert | AbsoluteAlert, Field(discriminator="kind")]

ALERT_ADAPTER: TypeAdapter[PercentAlert | AbsoluteAlert] = TypeAdapter(Alert)


def parse_alert(data: dict[str, object]) -> PercentAlert | AbsoluteAlert:
    """Validate a raw mapping into the matching alert shape.

    A missing ``kind`` is treated as ``"percent"``, matching the API default.

    Raises:
        pydantic.ValidationError: If the payload does not fit either shape.
    """
    payload = dict(data)
    payload.setdefault("kind", "percent")
    return ALERT_ADAPTER.validate_python(payload)


class PricePoint(BaseModel):
    """Latest known price for a symbol, as fed into the evaluator."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    price: Decimal = Field(gt=0)

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        return canonical_symbol(value)


class AlertTrigger(BaseModel):
    """An alert that fired, with the notification text to deliver."""

    model_config = ConfigDict(frozen=True)

    alert_id: str
    symbol: str
    title: str
    message: str

    @property
    def dedupe_tag(self) -> str:
        return f"alert-{self.alert_id}"


class CycleResult(BaseModel):
    """Outcome of one fetch-evaluate-mark-notify cycle."""

    model_config = ConfigDict(frozen=True)

    checked_count: int
    triggered_count: int
    missing_symbols: list[str] = Field(default_factory=list)
