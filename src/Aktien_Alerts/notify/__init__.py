"""Notification delivery for fired alerts."""

from Aktien_Alerts.notify.notifier import LoggingNotifier, Notifier, WebhookNotifier

__all__ = ["LoggingNotifier", "Notifier", "WebhookNotifier"]
