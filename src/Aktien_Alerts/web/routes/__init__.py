"""FastAPI route modules for Aktien Alerts.

Re-exports all routers so the application factory can import them:
    from Aktien_Alerts.web.routes import alerts_router, stocks_router
"""

from Aktien_Alerts.web.routes.alerts import router as alerts_router
from Aktien_Alerts.web.routes.cron import router as cron_router
from Aktien_Alerts.web.routes.health import router as health_router
from Aktien_Alerts.web.routes.stocks import router as stocks_router

__all__ = [
    "alerts_router",
    "cron_router",
    "health_router",
    "stocks_router",
]
