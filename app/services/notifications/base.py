from abc import ABC, abstractmethod
from typing import Any, Dict
import logging

from app.models.outcome import RemediationOutcome

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """
    Receives one structured outcome event per remediation operation.

    Contract:
    - publish() MUST NEVER raise upstream exceptions.
    - publish() MUST NOT block the event loop for network I/O.
    - How the event reaches a human is up to the implementation.
    """

    @abstractmethod
    def publish(self, outcome: RemediationOutcome) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release delivery resources. Called once on application shutdown."""


def outcome_event(outcome: RemediationOutcome) -> Dict[str, Any]:
    """Wire shape of an outcome event: Success, Failure{reason} or Busy."""
    return {
        "event": outcome.status.value,
        "operation": outcome.operation,
        "error_kind": outcome.error_kind.value if outcome.error_kind else None,
        "reason": outcome.reason,
        "record_id": outcome.record_id,
        "location": outcome.location,
        "target_status": outcome.target_status,
        "succeeded_ids": list(outcome.succeeded_ids),
        "failed_ids": list(outcome.failed_ids),
        "skipped_ids": list(outcome.skipped_ids),
        "occurred_at": outcome.occurred_at.isoformat(),
    }
