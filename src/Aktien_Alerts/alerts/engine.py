"""One fetch-evaluate-mark-notify pass over the active alerts.

``AlertEngine.run_evaluation_cycle`` is shared by every caller that checks
alerts: the scheduled cron route, the ``check-alerts`` CLI command and the
client poll loop. Several of them may evaluate the same alert at once, so a
notification is only sent by the caller whose ``mark_triggered`` actually
flipped the alert. The remaining duplicate window (the webhook dedupe set
is per process) is accepted.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import TYPE_CHECKING, Protocol

from Aktien_Alerts.alerts.evaluator import evaluate
from Aktien_Alerts.models.alerts import (
    AbsoluteAlert,
    AlertTrigger,
    CycleResult,
    PercentAlert,
    PricePoint,
)
from Aktien_Alerts.models.market_data import canonical_symbol

if TYPE_CHECKING:
    from Aktien_Alerts.notify.notifier import Notifier
    from Aktien_Alerts.services.market_data import MarketDataService

logger = logging.getLogger(__name__)


class AlertStore(Protocol):
    """Persistence operations the engine needs. ``AlertRepository`` satisfies it."""

    async def list_active(
        self, user_id: str | None = None
    ) -> list[PercentAlert | AbsoluteAlert]: ...

    async def mark_triggered(
        self,
        alert_id: str,
        *,
        user_id: str | None = None,
        triggered_at: datetime.datetime | None = None,
    ) -> bool: ...


class AlertEngine:
    """Evaluates active alerts against fresh quotes and notifies on new triggers.

    Notifications are scheduled as background tasks so a slow notifier never
    holds up the cycle; call ``drain()`` before shutdown to let them finish.

    Usage::

        engine = AlertEngine(store=repo, market_data=service, notifier=LoggingNotifier())
        result = await engine.run_evaluation_cycle()
        await engine.drain()
    """

    def __init__(
        self,
        store: AlertStore,
        market_data: MarketDataService,
        notifier: Notifier,
    ) -> None:
        self._store = store
        self._market_data = market_data
        self._notifier = notifier
        self._deliveries: set[asyncio.Task[None]] = set()

    @property
    def pending_deliveries(self) -> int:
        return len(self._deliveries)

    async def run_evaluation_cycle(
        self,
        symbols: list[str] | None = None,
        *,
        user_id: str | None = None,
    ) -> CycleResult:
        """Run one evaluation pass.

        Args:
            symbols: Restrict the pass to alerts on these symbols. None means
                every symbol referenced by an active alert.
            user_id: Restrict the pass to one user's alerts (the client poll
                loop). None evaluates all users (the scheduled job).

        Returns:
            ``CycleResult`` with the number of alerts checked, the number this
            pass transitioned to triggered, and symbols that had no quote.
        """
        alerts = [a for a in await self._store.list_active(user_id) if not a.triggered]
        if symbols is not None:
            wanted = {canonical_symbol(s) for s in symbols}
            alerts = [a for a in alerts if a.symbol in wanted]
        if not alerts:
            logger.debug("No active alerts to evaluate")
            return CycleResult(checked_count=0, triggered_count=0)

        distinct = list(dict.fromkeys(a.symbol for a in alerts))
        quotes = await self._market_data.get_quotes(distinct)
        prices = [
            PricePoint(symbol=symbol, price=quote.current)
            for symbol, quote in quotes.items()
            if quote is not None
        ]
        missing = [symbol for symbol, quote in quotes.items() if quote is None]
        if missing:
            logger.warning("No quote this cycle for: %s", ", ".join(missing))

        triggered = 0
        for trigger in evaluate(prices, alerts):
            try:
                transitioned = await self._store.mark_triggered(
                    trigger.alert_id, user_id=user_id
                )
            except Exception:  # noqa: BLE001
                logger.exception("Failed to mark alert %s triggered", trigger.alert_id)
                continue
            if not transitioned:
                logger.info("Alert %s was already triggered elsewhere", trigger.alert_id)
                continue
            triggered += 1
            self._schedule_delivery(trigger)

        logger.info(
            "Evaluation cycle: %d checked, %d triggered, %d symbols missing",
            len(alerts),
            triggered,
            len(missing),
        )
        return CycleResult(
            checked_count=len(alerts),
            triggered_count=triggered,
            missing_symbols=missing,
        )

    async def drain(self) -> None:
        """Wait for every scheduled notification to finish."""
        if self._deliveries:
            await asyncio.gather(*self._deliveries, return_exceptions=True)

    # ------------------------------------------------------------------
    # Notification delivery
    # ------------------------------------------------------------------

    def _schedule_delivery(self, trigger: AlertTrigger) -> None:
        task = asyncio.create_task(
            self._notifier.deliver(trigger.title, trigger.message, trigger.dedupe_tag),
            name=trigger.dedupe_tag,
        )
        self._deliveries.add(task)
        task.add_done_callback(self._on_delivery_done)

    def _on_delivery_done(self, task: asyncio.Task[None]) -> None:
        self._deliveries.discard(task)
        if task.cancelled():
            logger.warning("Notification %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Notification %s failed: %r", task.get_name(), exc)
