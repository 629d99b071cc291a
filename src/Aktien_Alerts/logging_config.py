"""Logging setup shared by the CLI and the web app.

The root level resolves as ``verbose`` > ``quiet`` > ``level`` > ``LOG_LEVEL``
> INFO. Each area of the package can be tuned on its own with
``LOG_LEVEL_<AREA>``, e.g. ``LOG_LEVEL_ALERTS=DEBUG`` to trace evaluation
without the fetch chatter.
"""

from __future__ import annotations

import logging
import os

LOG_FORMAT: str = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

AREA_LOGGERS: dict[str, str] = {
    "SERVICES": "Aktien_Alerts.services",
    "ALERTS": "Aktien_Alerts.alerts",
    "DATA": "Aktien_Alerts.data",
    "WEB": "Aktien_Alerts.web",
    "NOTIFY": "Aktien_Alerts.notify",
}

# httpx and httpcore log full request URLs, which carry the Finnhub token.
_HELD_AT_WARNING = ("uvicorn.access", "httpx", "httpcore")


def _parse_level(name: str | None) -> int | None:
    if not name:
        return None
    return logging.getLevelNamesMapping().get(name.strip().upper())


def _root_level(*, level: str, verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    for candidate in (level, os.environ.get("LOG_LEVEL")):
        resolved = _parse_level(candidate)
        if resolved is not None:
            return resolved
    return logging.INFO


def configure_logging(
    *,
    level: str = "",
    verbose: bool = False,
    quiet: bool = False,
) -> None:
    """Install the shared format on the root logger, replacing uvicorn's setup."""
    logging.basicConfig(
        level=_root_level(level=level, verbose=verbose, quiet=quiet),
        format=LOG_FORMAT,
        force=True,
    )
    for name in _HELD_AT_WARNING:
        logging.getLogger(name).setLevel(logging.WARNING)

    for area, logger_name in AREA_LOGGERS.items():
        override = _parse_level(os.environ.get(f"LOG_LEVEL_{area}"))
        if override is not None:
            logging.getLogger(logger_name).setLevel(override)
