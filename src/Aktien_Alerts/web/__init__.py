"""FastAPI web layer for Aktien Alerts.

Re-exports the application factory so consumers can import directly:
    from Aktien_Alerts.web import create_app
"""

from Aktien_Alerts.web.app import create_app

__all__ = ["create_app"]
