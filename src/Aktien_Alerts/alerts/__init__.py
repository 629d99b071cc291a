"""Alert evaluation: the pure evaluator, the evaluation cycle, and the poll loop."""

from Aktien_Alerts.alerts.engine import AlertEngine, AlertStore
from Aktien_Alerts.alerts.evaluator import evaluate, trigger_message
from Aktien_Alerts.alerts.poller import AlertPoller

__all__ = [
    "AlertEngine",
    "AlertPoller",
    "AlertStore",
    "evaluate",
    "trigger_message",
]
