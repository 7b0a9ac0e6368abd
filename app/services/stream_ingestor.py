"""
Stream Ingestor - turns the report store's change feed into snapshots.

DESIGN PRINCIPLES:
- Every emission is a total snapshot, never a delta
- Normalization happens before any consumer sees a record
- A transport error keeps the last good snapshot (marked stale)
- Releasing a subscription stops all further emissions
"""

import asyncio
import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from app.models.report import Snapshot
from app.services.errors import IngestFailure
from app.services.mutation_context import MutationContext
from app.services.record_store.base import RawRecord, RecordFilter, RecordStore
from app.utils.report_normalizer import normalize_report

logger = logging.getLogger(__name__)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class SnapshotHandle:
    """
    Live view returned by StreamIngestor.subscribe().

    Pull with current_snapshot(), or await wait_for_snapshot() for the
    next emission. unsubscribe() is idempotent.
    """

    def __init__(self, ingestor: "StreamIngestor", listener: Optional[Callable[[Snapshot], None]] = None):
        self._ingestor = ingestor
        self._listener = listener
        self._closed = False
        self._error: Optional[IngestFailure] = None
        self._changed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_error(self) -> Optional[IngestFailure]:
        return self._error

    def current_snapshot(self) -> Snapshot:
        return self._ingestor.current_snapshot()

    def raise_for_error(self) -> None:
        if self._error is not None:
            raise self._error

    async def wait_for_snapshot(self, after_version: int, timeout: Optional[float] = None) -> Snapshot:
        """
        Wait until a snapshot newer than after_version is emitted.

        Raises:
            IngestFailure: If the feed failed or the handle was released
            asyncio.TimeoutError: If timeout elapses first
        """
        while True:
            self.raise_for_error()
            snapshot = self.current_snapshot()
            if snapshot.version > after_version:
                return snapshot
            if self._closed:
                raise IngestFailure("Subscription released")
            self._changed.clear()
            await asyncio.wait_for(self._changed.wait(), timeout)

    def unsubscribe(self) -> None:
        self._ingestor.release(self)

    def _notify(self, snapshot: Snapshot) -> None:
        if self._closed:
            return
        if self._listener is not None:
            self._listener(snapshot)
        self._changed.set()

    def _fail(self, error: IngestFailure) -> None:
        self._error = error
        self._changed.set()

    def _close(self) -> None:
        self._closed = True
        self._changed.set()


class StreamIngestor:
    """Owns the single upstream subscription for one mutation context."""

    def __init__(self, store: RecordStore, context: MutationContext):
        self.store = store
        self.context = context
        self._handle: Optional[SnapshotHandle] = None
        self._release_upstream: Optional[Callable[[], None]] = None
        self._record_filter: Optional[RecordFilter] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._generation = 0
        self._last_error: Optional[IngestFailure] = None

    @property
    def subscribed(self) -> bool:
        return self._handle is not None and not self._handle.closed

    @property
    def last_error(self) -> Optional[IngestFailure]:
        return self._last_error

    def current_snapshot(self) -> Snapshot:
        return self.context.snapshot.current()

    def subscribe(
        self,
        record_filter: Optional[RecordFilter] = None,
        listener: Optional[Callable[[Snapshot], None]] = None,
    ) -> SnapshotHandle:
        """
        Open the upstream subscription.

        Raises:
            IngestFailure: If already subscribed, or the store refuses the subscription
        """
        if self.subscribed:
            raise IngestFailure("Ingestor is already subscribed; unsubscribe first")

        self._generation += 1
        generation = self._generation
        self._loop = _running_loop()
        self._record_filter = record_filter
        self._last_error = None

        handle = SnapshotHandle(self, listener)
        self._handle = handle
        self.context.snapshot.add_listener(handle._notify)

        try:
            self._release_upstream = self.store.subscribe(
                record_filter,
                lambda raws: self._dispatch(self._on_batch, generation, raws),
                lambda error: self._dispatch(self._on_error, generation, error),
            )
        except Exception as e:
            logger.error(f"❌ Failed to subscribe to reports: {e}", exc_info=True)
            self.context.snapshot.remove_listener(handle._notify)
            handle._close()
            self._handle = None
            raise IngestFailure(f"Failed to subscribe to reports: {e}", cause=e) from e

        logger.info(f"Subscribed to report feed (filter={record_filter})")
        return handle

    def release(self, handle: SnapshotHandle) -> None:
        if handle.closed:
            return
        handle._close()
        self.context.snapshot.remove_listener(handle._notify)
        if handle is not self._handle:
            return

        # Batches from the released upstream are ignored from here on
        self._generation += 1
        self._handle = None
        release_upstream, self._release_upstream = self._release_upstream, None
        if release_upstream is not None:
            try:
                release_upstream()
            except Exception as e:
                logger.warning(f"⚠️ Releasing the report feed raised: {e}")
        logger.info("Unsubscribed from report feed")

    async def refresh(self, record_filter: Optional[RecordFilter] = None) -> Snapshot:
        """
        One-shot fetch of the collection, published as a new authoritative snapshot.

        Raises:
            IngestFailure: If the fetch fails (the previous snapshot is kept, marked stale)
        """
        effective_filter = record_filter or self._record_filter
        try:
            raws = await self.store.fetch_all(effective_filter)
        except Exception as e:
            logger.error(f"❌ Report fetch failed: {e}", exc_info=True)
            self._last_error = IngestFailure(f"Report fetch failed: {e}", cause=e)
            self.context.snapshot.mark_stale()
            raise self._last_error from e

        snapshot = self._publish_batch(raws)
        logger.info(f"Fetched {len(snapshot.reports)} reports")
        return snapshot

    # Delivery

    def _dispatch(self, fn, *args) -> None:
        loop = self._loop
        if loop is None or _running_loop() is loop:
            fn(*args)
        elif loop.is_closed():
            logger.warning("Dropping report feed callback: event loop is closed")
        else:
            loop.call_soon_threadsafe(fn, *args)

    def _on_batch(self, generation: int, raws: List[RawRecord]) -> None:
        if generation != self._generation or not self.subscribed:
            return
        self._publish_batch(raws)

    def _publish_batch(self, raws: List[RawRecord]) -> Snapshot:
        reports = []
        for raw in raws:
            try:
                report = normalize_report(raw)
            except ValidationError as e:
                logger.warning(f"⚠️ Dropping malformed report {raw.get('id')}: {e.error_count()} invalid field(s)")
                continue
            if report is not None:
                reports.append(report)
        self._last_error = None
        if self._handle is not None:
            self._handle._error = None
        snapshot = self.context.snapshot.replace_authoritative(reports)
        logger.debug(f"Report snapshot v{snapshot.version}: {len(snapshot.reports)} reports")
        return snapshot

    def _on_error(self, generation: int, error: BaseException) -> None:
        if generation != self._generation or not self.subscribed:
            return
        failure = IngestFailure(f"Report feed failed: {error}", cause=error)
        self._last_error = failure
        logger.error(f"❌ {failure} - keeping last good snapshot")
        self._handle._fail(failure)
        self.context.snapshot.mark_stale()
