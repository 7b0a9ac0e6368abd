"""
Pulse runtime - wires the store, snapshot, ingestor and coordinator together.

One runtime per process. Routes reach it through get_runtime(); tests
install their own with set_runtime().
"""

import logging
from typing import Optional

from app.models.report import Snapshot
from app.services.analytics_service import AnalyticsService
from app.services.mutation_context import MutationContext
from app.services.notifications import NotificationSink, get_notification_sink
from app.services.record_store import InMemoryRecordStore, RecordFilter, RecordStore, get_record_store
from app.services.remediation_coordinator import RemediationCoordinator
from app.services.stream_ingestor import SnapshotHandle, StreamIngestor
from app.services.trend_detector import TrendDetector
from app.services.user_service import UserService

logger = logging.getLogger(__name__)


class PulseRuntime:
    def __init__(
        self,
        store: RecordStore,
        users: UserService,
        notifier: Optional[NotificationSink] = None,
        analytics: Optional[AnalyticsService] = None,
        trend: Optional[TrendDetector] = None,
    ):
        self.store = store
        self.users = users
        self.context = MutationContext()
        self.ingestor = StreamIngestor(store, self.context)
        self.coordinator = RemediationCoordinator(store, self.context, notifier)
        self.notifier = self.coordinator.notifier
        self.analytics = analytics or AnalyticsService()
        self.trend = trend or TrendDetector()
        self.handle: Optional[SnapshotHandle] = None

    @property
    def running(self) -> bool:
        return self.handle is not None and not self.handle.closed

    def start(self, record_filter: Optional[RecordFilter] = None) -> SnapshotHandle:
        """Subscribe to the report feed (no-op if already running)."""
        if not self.running:
            self.handle = self.ingestor.subscribe(record_filter)
        return self.handle

    def stop(self) -> None:
        if self.handle is not None:
            self.handle.unsubscribe()

    def shutdown(self) -> None:
        """Stop the feed and release the outcome sink."""
        self.stop()
        self.notifier.close()

    def restart(self) -> SnapshotHandle:
        """Drop a failed feed and subscribe again."""
        self.stop()
        self.handle = None
        return self.start()

    def snapshot(self) -> Snapshot:
        return self.ingestor.current_snapshot()


_runtime: Optional[PulseRuntime] = None


def build_default_runtime() -> PulseRuntime:
    store = get_record_store()
    if isinstance(store, InMemoryRecordStore):
        users = UserService.from_mapping(store.users)
    else:
        users = UserService()
    return PulseRuntime(store=store, users=users, notifier=get_notification_sink())


def get_runtime() -> PulseRuntime:
    """Get or create the process runtime."""
    global _runtime
    if _runtime is None:
        _runtime = build_default_runtime()
    return _runtime


def set_runtime(runtime: Optional[PulseRuntime]) -> None:
    global _runtime
    _runtime = runtime
