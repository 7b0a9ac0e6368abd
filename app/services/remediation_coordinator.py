"""
Remediation Coordinator - serialized status changes against the report store.

DESIGN PRINCIPLES (CRITICAL):
- At most one in-flight status write per report
- At most one in-flight cleanup per location
- Busy keys are claimed before the first await and released on every exit
- Bulk cleanup is sequential, at-least-attempt, no rollback
- Local snapshot is updated optimistically and reverted on failure
- Every operation returns (and publishes) exactly one outcome

WHAT THIS SERVICE DOES NOT DO:
❌ Retry failed writes
❌ Enforce timeouts (a hung write keeps its key busy)
❌ Decide who is allowed to remediate
"""

import asyncio
import itertools
import logging
import time
from datetime import datetime, timezone
from typing import Any, List, Optional

from app.models.outcome import ErrorKind, OutcomeStatus, RemediationOutcome
from app.models.report import Report, ReportCategory
from app.services.errors import BusyError, MutationFailure, ValidationFailure
from app.services.mutation_context import MutationContext
from app.services.notifications.base import NotificationSink
from app.services.notifications.log_sink import LoggingNotificationSink
from app.services.record_store.base import RecordStore
from app.services.status_workflow import ReportStatus, StatusWorkflowEngine
from app.utils.report_normalizer import normalize_category, normalize_location, normalize_report

logger = logging.getLogger(__name__)


def _require_text(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailure(f"Missing {what}")
    return value.strip()


class RemediationCoordinator:
    """Executes mark_status, cleanup_location and optimistic report submission."""

    def __init__(
        self,
        store: RecordStore,
        context: MutationContext,
        notifier: Optional[NotificationSink] = None,
    ):
        self.store = store
        self.context = context
        self.notifier = notifier or LoggingNotificationSink()
        self._temp_ids = itertools.count(1)

    # Outcomes

    def _emit(self, outcome: RemediationOutcome) -> RemediationOutcome:
        self.notifier.publish(outcome)
        return outcome

    def _failure(self, operation: str, kind: ErrorKind, reason: str, **fields) -> RemediationOutcome:
        return self._emit(RemediationOutcome(
            operation=operation,
            status=OutcomeStatus.FAILURE,
            error_kind=kind,
            reason=reason,
            **fields,
        ))

    # Single record

    async def _apply_status(self, record_id: str, target: ReportStatus) -> None:
        """
        Write one status. The caller must already hold record_id.

        Raises:
            ValidationFailure: If the snapshot copy cannot make this transition
            MutationFailure: If the store rejects the write
        """
        current = self.context.snapshot.get(record_id)
        if current is not None:
            StatusWorkflowEngine.validate_transition(current.status, target.value)

        self.context.snapshot.apply_status(record_id, target.value)
        try:
            await self.store.update_status(record_id, target.value)
        except asyncio.CancelledError:
            self.context.snapshot.revert_status(record_id)
            raise
        except Exception as e:
            self.context.snapshot.revert_status(record_id)
            logger.error(f"❌ Status write failed for report {record_id}: {e}")
            raise MutationFailure(f"Failed to set report {record_id} to {target.value}: {e}", record_id) from e

        self.context.snapshot.confirm_status(record_id)

    async def mark_status(self, record_id: str, new_status: str) -> RemediationOutcome:
        """
        Change the status of one report.

        Returns busy without touching the store if the report is already
        being updated. Re-applying the current status succeeds.
        """
        operation = "mark_status"
        try:
            record_id = _require_text(record_id, "report id")
            target = StatusWorkflowEngine.validate_target(new_status)
        except ValidationFailure as e:
            return self._failure(
                operation, ErrorKind.VALIDATION_FAILURE, e.reason,
                record_id=record_id if isinstance(record_id, str) else None,
                target_status=str(new_status),
            )

        try:
            with self.context.busy_records.hold(record_id):
                await self._apply_status(record_id, target)
        except BusyError as e:
            return self._emit(RemediationOutcome(
                operation=operation,
                status=OutcomeStatus.BUSY,
                reason=str(e),
                record_id=record_id,
                target_status=target.value,
            ))
        except ValidationFailure as e:
            return self._failure(
                operation, ErrorKind.VALIDATION_FAILURE, e.reason,
                record_id=record_id, target_status=target.value,
            )
        except MutationFailure as e:
            return self._failure(
                operation, ErrorKind.MUTATION_FAILURE, e.reason,
                record_id=record_id, target_status=target.value, failed_ids=[record_id],
            )

        return self._emit(RemediationOutcome(
            operation=operation,
            status=OutcomeStatus.SUCCESS,
            record_id=record_id,
            target_status=target.value,
            succeeded_ids=[record_id],
        ))

    # Location-wide

    async def cleanup_location(self, location: str) -> RemediationOutcome:
        """
        Mark every report at a location as cleaned, one at a time.

        Targets are taken from the snapshot at the start of the cleanup.
        Already-cleaned reports count as successes. Resolved reports are
        skipped, and so are submissions the store has not confirmed yet.
        Any per-report failure makes the whole cleanup a failure,
        but reports already updated stay updated.
        """
        operation = "cleanup_location"
        target = ReportStatus.CLEANED
        try:
            key = normalize_location(_require_text(location, "location"))
        except ValidationFailure as e:
            return self._failure(operation, ErrorKind.VALIDATION_FAILURE, e.reason, target_status=target.value)

        succeeded: List[str] = []
        failed: List[str] = []
        skipped: List[str] = []
        reasons: List[str] = []

        try:
            with self.context.busy_locations.hold(key):
                at_location = [r for r in self.context.snapshot.current().reports if r.location == key]
                # Unconfirmed submissions have no stored document to update yet
                skipped.extend(r.id for r in at_location if r.is_optimistic)
                targets = [r for r in at_location if not r.is_optimistic]
                if not targets:
                    raise ValidationFailure(f"No reports found at '{key}'")

                logger.info(f"Cleaning up {len(targets)} reports at '{key}'")
                for report in targets:
                    current = self.context.snapshot.get(report.id) or report
                    if not StatusWorkflowEngine.is_valid_transition(current.status, target.value):
                        skipped.append(report.id)
                        continue
                    try:
                        with self.context.busy_records.hold(report.id):
                            await self._apply_status(report.id, target)
                        succeeded.append(report.id)
                    except (BusyError, MutationFailure, ValidationFailure) as e:
                        failed.append(report.id)
                        reasons.append(f"{report.id}: {e}")
        except BusyError as e:
            return self._emit(RemediationOutcome(
                operation=operation,
                status=OutcomeStatus.BUSY,
                reason=str(e),
                location=key,
                target_status=target.value,
            ))
        except ValidationFailure as e:
            return self._failure(
                operation, ErrorKind.VALIDATION_FAILURE, e.reason,
                location=key, target_status=target.value,
            )

        if failed:
            attempted = len(succeeded) + len(failed)
            return self._failure(
                operation,
                ErrorKind.MUTATION_FAILURE,
                f"{len(failed)} of {attempted} reports at '{key}' could not be cleaned: " + "; ".join(reasons),
                location=key,
                target_status=target.value,
                succeeded_ids=succeeded,
                failed_ids=failed,
                skipped_ids=skipped,
            )

        return self._emit(RemediationOutcome(
            operation=operation,
            status=OutcomeStatus.SUCCESS,
            location=key,
            target_status=target.value,
            succeeded_ids=succeeded,
            skipped_ids=skipped,
        ))

    # Submission

    def _temp_id(self) -> str:
        return f"temp-{int(time.time() * 1000)}-{next(self._temp_ids)}"

    async def submit_report(
        self,
        uid: str,
        category: str,
        description: Optional[str] = None,
        location: Optional[str] = None,
    ) -> RemediationOutcome:
        """
        Create a report, showing it in the snapshot before the store confirms.

        The optimistic copy is retired on confirmation (replaced by the
        confirmed record) or on failure.
        """
        operation = "submit_report"
        try:
            uid = _require_text(uid, "uid")
            try:
                category_value = ReportCategory(normalize_category(category)).value
            except ValueError:
                raise ValidationFailure(f"Unknown category '{category}'")
        except ValidationFailure as e:
            return self._failure(operation, ErrorKind.VALIDATION_FAILURE, e.reason)

        description = description or None
        optimistic = Report(
            id=self._temp_id(),
            category=category_value,
            description=description,
            location=normalize_location(location),
            status=ReportStatus.NEW.value,
            created_at=datetime.now(timezone.utc),
            uid=uid,
            is_optimistic=True,
        )
        self.context.snapshot.add_optimistic(optimistic)

        fields = {
            "uid": uid,
            "type": category_value,
            "description": description,
            "location": location or None,
            "status": ReportStatus.NEW.value,
        }
        try:
            confirmed_id, confirmed_fields = await self.store.create_record(fields)
        except Exception as e:
            self.context.snapshot.retire_optimistic(optimistic.id)
            logger.error(f"❌ Report creation failed: {e}", exc_info=True)
            return self._failure(operation, ErrorKind.MUTATION_FAILURE, f"Report creation failed: {e}")

        confirmed = normalize_report({**confirmed_fields, "id": confirmed_id})
        if confirmed.created_at is None:
            confirmed = confirmed.model_copy(update={"created_at": optimistic.created_at})
        self.context.snapshot.confirm_optimistic(optimistic.id, confirmed)

        return self._emit(RemediationOutcome(
            operation=operation,
            status=OutcomeStatus.SUCCESS,
            record_id=confirmed_id,
            location=confirmed.location,
            succeeded_ids=[confirmed_id],
        ))
