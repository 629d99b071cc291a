"""Pydantic v2 models, enums, and type definitions.

Re-exports all public models so consumers can import directly:
    from Aktien_Alerts.models import Quote, PercentAlert, AlertDirection
"""

from Aktien_Alerts.models.alerts import (
    AbsoluteAlert,
    Alert,
    AlertTrigger,
    CycleResult,
    PercentAlert,
    PricePoint,
    parse_alert,
)
from Aktien_Alerts.models.enums import (
    AlertDirection,
    AlertKind,
    CandleResolution,
    ChartPeriod,
    DataKind,
)
from Aktien_Alerts.models.market_data import (
    CandleSeries,
    CompanyProfile,
    MarketStatus,
    Quote,
    StockSnapshot,
    compute_change,
)

__all__ = [
    # Enums
    "AlertDirection",
    "AlertKind",
    "CandleResolution",
    "ChartPeriod",
    "DataKind",
    # Market data
    "CandleSeries",
    "CompanyProfile",
    "MarketStatus",
    "Quote",
    "StockSnapshot",
    "compute_change",
    # Alerts
    "AbsoluteAlert",
    "Alert",
    "AlertTrigger",
    "CycleResult",
    "PercentAlert",
    "PricePoint",
    "parse_alert",
]
