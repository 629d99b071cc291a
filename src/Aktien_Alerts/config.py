"""Runtime settings resolved from environment variables.

Every value has a working default, so an empty environment runs the whole
engine in demo mode against a local SQLite file.
"""

from __future__ import annotations

import logging
import os
from typing import Final

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_FINNHUB_BASE_URL: Final[str] = "https://finnhub.io/api/v1"
DEFAULT_DB_PATH: Final[str] = "data/alerts.db"
DEFAULT_FETCH_TIMEOUT_SECONDS: Final[float] = 12.0  # per symbol, across retries
DEFAULT_REQUEST_TIMEOUT_SECONDS: Final[float] = 4.0  # per attempt
DEFAULT_REQUESTS_PER_SECOND: Final[float] = 1.0  # Finnhub free tier: 60/min
DEFAULT_MAX_CONCURRENT: Final[int] = 5


class Settings(BaseModel):
    """Resolved application settings.

    ``finnhub_api_key`` being ``None`` is a supported mode: market data is
    served from the built-in demo tables instead of the provider.
    """

    model_config = ConfigDict(frozen=True)

    finnhub_api_key: str | None = None
    finnhub_base_url: str = DEFAULT_FINNHUB_BASE_URL
    db_path: str = DEFAULT_DB_PATH
    cron_secret: str | None = None
    webhook_url: str | None = None
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND
    max_concurrent: int = DEFAULT_MAX_CONCURRENT

    @property
    def demo_mode(self) -> bool:
        return not self.finnhub_api_key


def _env_str(name: str) -> str | None:
    """Return a stripped env var, treating empty strings as unset."""
    value = os.environ.get(name, "").strip()
    return value or None


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number), using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r (must be positive), using %s", name, raw, default)
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer), using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r (must be positive), using %d", name, raw, default)
        return default
    return value


def load_settings() -> Settings:
    """Build ``Settings`` from the current environment."""
    settings = Settings(
        finnhub_api_key=_env_str("FINNHUB_API_KEY"),
        finnhub_base_url=_env_str("FINNHUB_BASE_URL") or DEFAULT_FINNHUB_BASE_URL,
        db_path=_env_str("AKTIEN_DB_PATH") or DEFAULT_DB_PATH,
        cron_secret=_env_str("CRON_SECRET"),
        webhook_url=_env_str("ALERT_WEBHOOK_URL"),
        fetch_timeout_seconds=_env_float(
            "FETCH_TIMEOUT_SECONDS", DEFAULT_FETCH_TIMEOUT_SECONDS
        ),
        request_timeout_seconds=_env_float(
            "REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS
        ),
        requests_per_second=_env_float(
            "FINNHUB_REQUESTS_PER_SECOND", DEFAULT_REQUESTS_PER_SECOND
        ),
        max_concurrent=_env_int("FINNHUB_MAX_CONCURRENT", DEFAULT_MAX_CONCURRENT),
    )
    if settings.request_timeout_seconds >= settings.fetch_timeout_seconds:
        logger.warning(
            "REQUEST_TIMEOUT_SECONDS=%s is not below FETCH_TIMEOUT_SECONDS=%s; "
            "a timed-out attempt will never be retried",
            settings.request_timeout_seconds,
            settings.fetch_timeout_seconds,
        )
    logger.info(
        "Settings loaded: finnhub=%s, db=%s, webhook=%s",
        "configured" if settings.finnhub_api_key else "demo mode",
        settings.db_path,
        "configured" if settings.webhook_url else "not configured",
    )
    return settings
