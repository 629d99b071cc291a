"""Client-side poll loop: re-runs one user's evaluation on a market-aware cadence."""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Callable

from Aktien_Alerts.alerts.engine import AlertEngine
from Aktien_Alerts.models.alerts import CycleResult
from Aktien_Alerts.services.market_hours import poll_interval_seconds

logger = logging.getLogger(__name__)


class AlertPoller:
    """Runs ``AlertEngine.run_evaluation_cycle`` for one user until stopped.

    The wait between cycles comes from ``interval``: 15 seconds while the US
    market is open and 60 seconds otherwise by default. A failing cycle is
    logged and the loop carries on.
    """

    def __init__(
        self,
        engine: AlertEngine,
        *,
        user_id: str | None = None,
        symbols: list[str] | None = None,
        interval: Callable[[datetime.datetime | None], int] = poll_interval_seconds,
    ) -> None:
        self._engine = engine
        self._user_id = user_id
        self._symbols = symbols
        self._interval = interval

    async def run_once(self) -> CycleResult:
        return await self._engine.run_evaluation_cycle(self._symbols, user_id=self._user_id)

    async def run(self, stop: asyncio.Event, *, max_cycles: int | None = None) -> int:
        """Poll until *stop* is set or *max_cycles* passes have run.

        Returns:
            Number of cycles that completed without error.
        """
        completed = 0
        cycles = 0
        while not stop.is_set():
            try:
                result = await self.run_once()
            except Exception:  # noqa: BLE001
                logger.exception("Poll cycle failed; retrying next interval")
            else:
                completed += 1
                if result.triggered_count:
                    logger.info("Poll cycle triggered %d alert(s)", result.triggered_count)
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            delay = self._interval(None)
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except TimeoutError:
                continue

        await self._engine.drain()
        return completed
