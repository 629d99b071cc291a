"""Alert store backed by the SQLite database.

Provides typed CRUD operations for price alerts. All queries use
parameterized SQL (no string interpolation). Decimal fields are stored as
TEXT so thresholds survive the roundtrip exactly.

``mark_triggered`` is a conditional update: only the call that flips
``triggered`` from 0 to 1 reports True. That is what keeps an alert from
firing twice when the scheduled job and a poll loop evaluate it at the same
moment.
"""

import datetime
import logging
from decimal import Decimal

import aiosqlite

from Aktien_Alerts.data.database import Database
from Aktien_Alerts.models.alerts import AbsoluteAlert, PercentAlert, parse_alert

logger = logging.getLogger(__name__)

AlertRecord = PercentAlert | AbsoluteAlert

_ALERT_COLUMNS = (
    "id, user_id, symbol, direction, kind, percent, baseline, target_price, "
    "triggered, triggered_at, created_at"
)


class AlertRepository:
    """Query interface for persisted alerts.

    All methods operate through the provided Database instance's connection.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def create(self, alert: AlertRecord) -> AlertRecord:
        """Persist a new alert and return it as stored."""
        percent: Decimal | None = None
        baseline: Decimal | None = None
        target_price: Decimal | None = None
        if isinstance(alert, PercentAlert):
            percent, baseline = alert.percent, alert.baseline
        else:
            target_price = alert.target_price

        conn = self._db.connection
        await conn.execute(
            f"INSERT INTO alerts ({_ALERT_COLUMNS}) "  # noqa: S608
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                alert.id,
                alert.user_id,
                alert.symbol,
                alert.direction.value,
                alert.kind,
                _decimal_text(percent),
                _decimal_text(baseline),
                _decimal_text(target_price),
                int(alert.triggered),
                alert.triggered_at.isoformat() if alert.triggered_at else None,
                alert.created_at.isoformat(),
            ),
        )
        await conn.commit()
        logger.info(
            "Created %s alert %s: %s %s for user %s",
            alert.kind,
            alert.id,
            alert.symbol,
            alert.direction.value,
            alert.user_id,
        )
        return alert

    async def get(self, alert_id: str) -> AlertRecord | None:
        """Return one alert by ID, or None."""
        conn = self._db.connection
        cursor = await conn.execute(
            f"SELECT {_ALERT_COLUMNS} FROM alerts WHERE id = ?",  # noqa: S608
            (alert_id,),
        )
        row = await cursor.fetchone()
        return _row_to_alert(row) if row is not None else None

    async def list_active(self, user_id: str | None = None) -> list[AlertRecord]:
        """Return untriggered alerts, oldest first.

        With ``user_id=None`` every user's alerts are returned, which is what
        the scheduled server job evaluates.
        """
        conn = self._db.connection
        if user_id is None:
            cursor = await conn.execute(
                f"SELECT {_ALERT_COLUMNS} FROM alerts "  # noqa: S608
                "WHERE triggered = 0 ORDER BY created_at"
            )
        else:
            cursor = await conn.execute(
                f"SELECT {_ALERT_COLUMNS} FROM alerts "  # noqa: S608
                "WHERE triggered = 0 AND user_id = ? ORDER BY created_at",
                (user_id,),
            )
        rows = await cursor.fetchall()
        return [_row_to_alert(row) for row in rows]

    async def list_for_user(self, user_id: str) -> list[AlertRecord]:
        """Return all of a user's alerts, triggered or not, newest first."""
        conn = self._db.connection
        cursor = await conn.execute(
            f"SELECT {_ALERT_COLUMNS} FROM alerts "  # noqa: S608
            "WHERE user_id = ? ORDER BY created_at DESC",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_alert(row) for row in rows]

    async def mark_triggered(
        self,
        alert_id: str,
        *,
        user_id: str | None = None,
        triggered_at: datetime.datetime | None = None,
    ) -> bool:
        """Flip an alert to triggered if it is not already.

        Returns:
            True if this call performed the transition; False if the alert
            was already triggered, does not exist, or belongs to another user.
        """
        when = (triggered_at or datetime.datetime.now(datetime.UTC)).isoformat()
        conn = self._db.connection
        if user_id is None:
            cursor = await conn.execute(
                "UPDATE alerts SET triggered = 1, triggered_at = ? "
                "WHERE id = ? AND triggered = 0",
                (when, alert_id),
            )
        else:
            cursor = await conn.execute(
                "UPDATE alerts SET triggered = 1, triggered_at = ? "
                "WHERE id = ? AND user_id = ? AND triggered = 0",
                (when, alert_id, user_id),
            )
        await conn.commit()
        transitioned = cursor.rowcount == 1
        if transitioned:
            logger.info("Alert %s marked triggered", alert_id)
        else:
            logger.debug("Alert %s not transitioned (already triggered or missing)", alert_id)
        return transitioned

    async def delete(self, alert_id: str, *, user_id: str | None = None) -> bool:
        """Delete an alert. Returns True if a row was removed."""
        conn = self._db.connection
        if user_id is None:
            cursor = await conn.execute("DELETE FROM alerts WHERE id = ?", (alert_id,))
        else:
            cursor = await conn.execute(
                "DELETE FROM alerts WHERE id = ? AND user_id = ?",
                (alert_id, user_id),
            )
        await conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted alert %s", alert_id)
        return deleted


# ---------------------------------------------------------------------------
# Row conversion helpers
# ---------------------------------------------------------------------------


def _decimal_text(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _row_to_alert(row: aiosqlite.Row | tuple[object, ...]) -> AlertRecord:
    """Convert a database row to the matching alert shape."""
    (
        alert_id,
        user_id,
        symbol,
        direction,
        kind,
        percent,
        baseline,
        target_price,
        triggered,
        triggered_at,
        created_at,
    ) = tuple(row)
    data: dict[str, object] = {
        "id": alert_id,
        "user_id": user_id,
        "symbol": symbol,
        "direction": direction,
        "kind": kind,
        "triggered": bool(triggered),
        "triggered_at": (
            datetime.datetime.fromisoformat(str(triggered_at)) if triggered_at else None
        ),
        "created_at": datetime.datetime.fromisoformat(str(created_at)),
    }
    if kind == "absolute":
        data["target_price"] = Decimal(str(target_price))
    else:
        data["percent"] = Decimal(str(percent))
        data["baseline"] = Decimal(str(baseline))
    return parse_alert(data)
