from .base import NotificationSink, outcome_event
from .log_sink import LoggingNotificationSink
from .resolver import get_notification_sink
from .webhook_sink import WebhookNotificationSink

__all__ = [
    "NotificationSink",
    "LoggingNotificationSink",
    "WebhookNotificationSink",
    "get_notification_sink",
    "outcome_event",
]
