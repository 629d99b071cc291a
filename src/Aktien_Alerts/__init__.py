"""Aktien Alerts: cached Finnhub market data and price-alert evaluation."""

__version__ = "0.1.0"
