import logging
from typing import Optional

from app.core.settings import settings
from .base import NotificationSink
from .log_sink import LoggingNotificationSink
from .webhook_sink import WebhookNotificationSink

logger = logging.getLogger(__name__)

_sink_instance: Optional[NotificationSink] = None


def get_notification_sink() -> NotificationSink:
    """
    Resolve the active outcome sink based on settings.

    Rules:
    - Default: log sink.
    - If NOTIFY_WEBHOOK_URL is set: webhook sink (which also logs).
    """
    global _sink_instance
    if _sink_instance is not None:
        return _sink_instance

    url = settings.NOTIFY_WEBHOOK_URL
    if url:
        _sink_instance = WebhookNotificationSink(url=url, timeout=settings.NOTIFY_TIMEOUT_SECONDS)
        logger.info("Notification sink initialized: webhook")
    else:
        _sink_instance = LoggingNotificationSink()
        logger.info("Notification sink initialized: log")

    return _sink_instance
