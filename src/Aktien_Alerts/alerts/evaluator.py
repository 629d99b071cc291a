"""Threshold evaluation for percent-from-baseline and absolute-target alerts.

``evaluate`` is pure: it reads prices and alerts and reports which alerts
fire, with the text to show the user. Marking alerts triggered and
delivering notifications is the caller's job, so the same function serves
the scheduled server job and the client poll loop.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from Aktien_Alerts.models.alerts import AbsoluteAlert, AlertTrigger, PercentAlert, PricePoint
from Aktien_Alerts.models.enums import AlertDirection

logger = logging.getLogger(__name__)


def percent_change(price: Decimal, baseline: Decimal) -> Decimal:
    """Move from *baseline* to *price* in percent (baseline is always positive)."""
    return (price - baseline) / baseline * 100


def absolute_fires(alert: AbsoluteAlert, price: Decimal) -> bool:
    if alert.direction is AlertDirection.RISE:
        return price >= alert.target_price
    return price <= alert.target_price


def percent_fires(alert: PercentAlert, price: Decimal) -> bool:
    delta = percent_change(price, alert.baseline)
    if alert.direction is AlertDirection.RISE:
        return delta >= alert.percent
    return delta <= -alert.percent


def trigger_message(alert: PercentAlert | AbsoluteAlert, price: Decimal) -> str:
    """Human-readable description of the crossing.

    Examples::

        AAPL reached $200.00 (target $200.00)
        AAPL is down 5.0% from $100.00 to $95.00
    """
    if isinstance(alert, AbsoluteAlert):
        verb = "reached" if alert.direction is AlertDirection.RISE else "dropped to"
        return f"{alert.symbol} {verb} ${price:,.2f} (target ${alert.target_price:,.2f})"

    moved = "up" if alert.direction is AlertDirection.RISE else "down"
    pct = abs(percent_change(price, alert.baseline))
    return (
        f"{alert.symbol} is {moved} {pct:.1f}% "
        f"from ${alert.baseline:,.2f} to ${price:,.2f}"
    )


def evaluate(
    quotes: list[PricePoint],
    alerts: list[PercentAlert | AbsoluteAlert],
) -> list[AlertTrigger]:
    """Decide which untriggered alerts fire at the given prices.

    Duplicate symbols in *quotes* resolve to the last price seen. Alerts
    whose symbol has no price this cycle are skipped, not treated as errors.
    Output order follows *alerts*.
    """
    prices: dict[str, Decimal] = {q.symbol: q.price for q in quotes}
    fired: list[AlertTrigger] = []

    for alert in alerts:
        if alert.triggered:
            continue
        price = prices.get(alert.symbol)
        if price is None:
            continue

        if isinstance(alert, AbsoluteAlert):
            should_fire = absolute_fires(alert, price)
        else:
            should_fire = percent_fires(alert, price)

        if should_fire:
            logger.debug("Alert %s fired: %s at %s", alert.id, alert.symbol, price)
            fired.append(
                AlertTrigger(
                    alert_id=alert.id,
                    symbol=alert.symbol,
                    title=f"{alert.symbol} Alert",
                    message=trigger_message(alert, price),
                )
            )

    return fired
