"""Shared helpers for the provider-facing service modules.

Consolidates the shared constants and safe type conversions used when
decoding provider JSON into typed models.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Final

# ---------------------------------------------------------------------------
# Shared constants
# ---------------------------------------------------------------------------

FINNHUB_SOURCE: Final[str] = "finnhub"
EXTERNAL_CALL_TIMEOUT_SECONDS: Final[float] = 12.0  # per symbol, across retries
REQUEST_TIMEOUT_SECONDS: Final[float] = 4.0  # per attempt


# ---------------------------------------------------------------------------
# Safe type conversions
# ---------------------------------------------------------------------------


def safe_decimal(value: object) -> Decimal:
    """Convert a numeric value to Decimal via string to preserve precision.

    Falls back to ``Decimal("0")`` for NaN / None / bool / unparseable values.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        str_val = str(value)
        if str_val in ("nan", "inf", "-inf", "None"):
            return Decimal("0")
        result = Decimal(str_val)
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not result.is_finite():
        return Decimal("0")
    return result


def safe_int(value: object) -> int:
    """Convert a numeric value to int, treating NaN/None as 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        float_val = float(str(value))
        if math.isnan(float_val) or math.isinf(float_val):
            return 0
        return int(float_val)
    except (ValueError, TypeError):
        return 0
