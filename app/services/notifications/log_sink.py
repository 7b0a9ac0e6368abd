import logging

from app.models.outcome import OutcomeStatus, RemediationOutcome

from .base import NotificationSink

logger = logging.getLogger(__name__)


class LoggingNotificationSink(NotificationSink):
    """Default sink: writes each outcome to the application log."""

    def publish(self, outcome: RemediationOutcome) -> None:
        target = outcome.record_id or outcome.location or "-"
        if outcome.status == OutcomeStatus.SUCCESS:
            logger.info(f"✅ {outcome.operation} {target}: success")
        elif outcome.status == OutcomeStatus.BUSY:
            logger.info(f"⏳ {outcome.operation} {target}: busy")
        else:
            logger.warning(f"⚠️ {outcome.operation} {target}: {outcome.error_kind} - {outcome.reason}")
