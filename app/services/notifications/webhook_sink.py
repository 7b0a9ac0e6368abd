import logging
from concurrent.futures import ThreadPoolExecutor

import requests

from app.models.outcome import RemediationOutcome

from .base import NotificationSink, outcome_event
from .log_sink import LoggingNotificationSink

logger = logging.getLogger(__name__)


class WebhookNotificationSink(NotificationSink):
    """
    POSTs outcome events as JSON to a configured URL.

    - Deliveries run on a single background worker, in publish order.
    - Uses a strict timeout (<= 3 seconds by default).
    - Never raises upstream exceptions; failed deliveries are logged.
    - Every event is also written to the log.
    """

    def __init__(self, url: str, timeout: float = 3.0, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="outcome-webhook")
        self._log_sink = LoggingNotificationSink()

    def publish(self, outcome: RemediationOutcome) -> None:
        self._log_sink.publish(outcome)
        try:
            self._executor.submit(self._deliver, outcome_event(outcome))
        except RuntimeError as e:
            logger.warning(f"Outcome webhook unavailable: {e}")

    def _deliver(self, payload) -> None:
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
            if resp.status_code >= 400:
                logger.warning(f"Outcome webhook failed with status {resp.status_code}")
        except requests.RequestException as e:
            logger.warning(f"Outcome webhook error: {e}")

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
