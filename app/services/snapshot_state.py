"""
Snapshot State - the single owned copy of the live report set.

The stream ingestor writes authoritative batches here; the remediation
coordinator writes optimistic overlays here. Every change materializes a
complete, ordered Snapshot and hands it to the registered listeners.

Reconciliation rules:
- In-flight overlays (status writes / creations awaiting the store)
  survive incoming batches.
- Confirmed overlays are dropped on the next authoritative batch, so the
  store's state replaces them rather than being merged with them.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from app.models.report import Report, Snapshot
from app.utils.report_normalizer import order_newest_first

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Snapshot], None]


class _StatusOverride:
    def __init__(self, status: str, previous: Optional["_StatusOverride"]):
        self.status = status
        self.previous = previous
        self.confirmed = False


class _PendingRecord:
    def __init__(self, report: Report):
        self.report = report
        self.confirmed = False


class SnapshotState:
    """Authoritative reports plus optimistic overlays."""

    def __init__(self):
        self._authoritative: Dict[str, Report] = {}
        self._pending_records: Dict[str, _PendingRecord] = {}
        self._status_overrides: Dict[str, _StatusOverride] = {}
        self._listeners: List[SnapshotListener] = []
        self._stale = False
        self._current = Snapshot()

    # Listeners

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # Reads

    def current(self) -> Snapshot:
        return self._current

    def get(self, record_id: str) -> Optional[Report]:
        for report in self._current.reports:
            if report.id == record_id:
                return report
        return None

    def has_pending_status(self, record_id: str) -> bool:
        override = self._status_overrides.get(record_id)
        return override is not None and not override.confirmed

    # Authoritative writes (stream ingestor)

    def replace_authoritative(self, reports: List[Report]) -> Snapshot:
        """Replace the authoritative set wholesale; duplicate ids keep the last occurrence."""
        self._authoritative = {report.id: report for report in reports}

        for record_id, override in list(self._status_overrides.items()):
            if override.confirmed:
                del self._status_overrides[record_id]

        for record_id, pending in list(self._pending_records.items()):
            if pending.confirmed or record_id in self._authoritative:
                del self._pending_records[record_id]

        self._stale = False
        return self._publish()

    def mark_stale(self) -> Snapshot:
        self._stale = True
        return self._publish()

    # Optimistic writes (remediation coordinator)

    def apply_status(self, record_id: str, status: str) -> Snapshot:
        self._status_overrides[record_id] = _StatusOverride(status, self._status_overrides.get(record_id))
        return self._publish()

    def confirm_status(self, record_id: str) -> None:
        override = self._status_overrides.get(record_id)
        if override is not None:
            override.confirmed = True
            override.previous = None

    def revert_status(self, record_id: str) -> Snapshot:
        override = self._status_overrides.pop(record_id, None)
        if override is not None and override.previous is not None:
            self._status_overrides[record_id] = override.previous
        return self._publish()

    def add_optimistic(self, report: Report) -> Snapshot:
        self._pending_records[report.id] = _PendingRecord(report)
        return self._publish()

    def confirm_optimistic(self, temp_id: str, confirmed: Report) -> Snapshot:
        """Retire the temporary copy and hold the confirmed record until the next batch."""
        self._pending_records.pop(temp_id, None)
        if confirmed.id not in self._authoritative:
            pending = _PendingRecord(confirmed)
            pending.confirmed = True
            self._pending_records[confirmed.id] = pending
        return self._publish()

    def retire_optimistic(self, temp_id: str) -> Snapshot:
        self._pending_records.pop(temp_id, None)
        return self._publish()

    # Materialization

    def _materialize(self) -> List[Report]:
        merged: Dict[str, Report] = dict(self._authoritative)
        for record_id, pending in self._pending_records.items():
            if record_id not in merged:
                merged[record_id] = pending.report
        for record_id, override in self._status_overrides.items():
            report = merged.get(record_id)
            if report is not None and report.status != override.status:
                merged[record_id] = report.model_copy(update={"status": override.status})
        return order_newest_first(list(merged.values()))

    def _publish(self) -> Snapshot:
        self._current = Snapshot(
            reports=self._materialize(),
            version=self._current.version + 1,
            generated_at=datetime.now(timezone.utc),
            stale=self._stale,
        )
        for listener in list(self._listeners):
            try:
                listener(self._current)
            except Exception as e:
                logger.error(f"Snapshot listener failed: {e}", exc_info=True)
        return self._current
