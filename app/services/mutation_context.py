"""
Mutation context - explicitly owned state passed to every operation.

Holds the live snapshot and the busy guards. Nothing here is a process
global, so the coordinator can be exercised without a live subscription.
"""

from contextlib import contextmanager
from typing import FrozenSet, Optional, Set

from app.services.errors import BusyError
from app.services.snapshot_state import SnapshotState


class KeyedGuard:
    """
    Per-key mutual exclusion for a single event loop.

    hold() checks and claims the key before the caller reaches any
    suspension point, and releases it on every exit path (success,
    exception or task cancellation).
    """

    def __init__(self, scope: str):
        self.scope = scope
        self._held: Set[str] = set()

    def is_busy(self, key: str) -> bool:
        return key in self._held

    @property
    def busy_keys(self) -> FrozenSet[str]:
        return frozenset(self._held)

    @contextmanager
    def hold(self, key: str):
        if key in self._held:
            raise BusyError(key, self.scope)
        self._held.add(key)
        try:
            yield key
        finally:
            self._held.discard(key)


class MutationContext:
    def __init__(self, snapshot: Optional[SnapshotState] = None):
        self.snapshot = snapshot or SnapshotState()
        self.busy_records = KeyedGuard("record")
        self.busy_locations = KeyedGuard("location")
