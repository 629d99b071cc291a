"""Persistence layer for Aktien Alerts.

Re-exports the main public API: Database for connection management,
AlertRepository for the alert store operations.
"""

from Aktien_Alerts.data.database import Database
from Aktien_Alerts.data.repository import AlertRepository

__all__ = ["AlertRepository", "Database"]
