import asyncio
import os
from typing import List, Optional

import pytest

os.environ.setdefault("USE_MOCK_DB", "true")
os.environ.setdefault("MOCK_DB_PATH", "./.pytest-missing-mock-db.json")

from app.services.mutation_context import MutationContext
from app.services.notifications.base import NotificationSink
from app.services.record_store.base import RecordStore
from app.services.record_store.memory_store import InMemoryRecordStore
from app.services.remediation_coordinator import RemediationCoordinator
from app.services.stream_ingestor import StreamIngestor


BASE_MS = 1_760_000_000_000
MINUTE_MS = 60_000


def raw_report(record_id, category, location, minute, uid="citizen-1", status="new", description=None):
    return {
        "id": record_id,
        "uid": uid,
        "type": category,
        "description": description or f"{category} at {location}",
        "location": location,
        "status": status,
        "createdAtClient": BASE_MS + minute * MINUTE_MS,
    }


def sample_reports():
    """Three Lagos spellings, one cleaned report in Ikeja, one without a location."""
    return [
        raw_report("r1", "noise", "Lagos", 1, uid="citizen-1"),
        raw_report("r2", "Noise", " Lagos ", 2, uid="citizen-2"),
        raw_report("r3", "traffic", "Lagos\t", 3, uid="citizen-1"),
        raw_report("r4", "crowd", "Ikeja", 4, uid="citizen-2", status="cleaned"),
        raw_report("r5", "pollution", "", 5, uid="citizen-3"),
    ]


USERS = {
    "admin-1": {"type": "admin"},
    "citizen-1": {"type": "client"},
    "citizen-2": {"type": "client"},
    "citizen-3": {"type": "client"},
}


class RecordingSink(NotificationSink):
    def __init__(self):
        self.outcomes = []
        self.closed = False

    def publish(self, outcome):
        self.outcomes.append(outcome)

    def close(self):
        self.closed = True


class FlakyStore(InMemoryRecordStore):
    """In-memory store that rejects writes for chosen ids and records every call."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_ids = set()
        self.fail_create = False
        self.update_calls: List[tuple] = []

    async def update_status(self, record_id, status):
        self.update_calls.append((record_id, status))
        if record_id in self.fail_ids:
            raise RuntimeError(f"write rejected for {record_id}")
        await super().update_status(record_id, status)

    async def create_record(self, fields):
        if self.fail_create:
            raise RuntimeError("create rejected")
        return await super().create_record(fields)


class GatedCreateStore(FlakyStore):
    """Creations block until the gate is opened; status writes go straight through."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.create_gate = asyncio.Event()

    async def create_record(self, fields):
        await self.create_gate.wait()
        return await super().create_record(fields)


class GatedStore(FlakyStore):
    """Writes block until the gate is opened."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()
        self.waiting = 0

    async def update_status(self, record_id, status):
        self.waiting += 1
        await self.gate.wait()
        await super().update_status(record_id, status)


class ManualStore(RecordStore):
    """Store whose feed is driven by the test."""

    def __init__(self, raws: Optional[list] = None):
        self.raws = list(raws or [])
        self.on_batch = None
        self.on_error = None
        self.released = 0
        self.fetch_error: Optional[Exception] = None

    def subscribe(self, record_filter, on_batch, on_error):
        self.on_batch = on_batch
        self.on_error = on_error

        def unsubscribe():
            self.released += 1

        return unsubscribe

    def emit(self, raws=None):
        if raws is not None:
            self.raws = list(raws)
        self.on_batch(list(self.raws))

    def fail(self, error):
        self.on_error(error)

    async def fetch_all(self, record_filter=None):
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.raws)

    async def update_status(self, record_id, status):
        raise NotImplementedError

    async def create_record(self, fields):
        raise NotImplementedError


@pytest.fixture()
def store():
    return FlakyStore(reports=sample_reports(), users=USERS)


@pytest.fixture()
def gated_store():
    return GatedStore(reports=sample_reports(), users=USERS)


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def context():
    return MutationContext()


def _live_coordinator(store, context, sink):
    ingestor = StreamIngestor(store, context)
    handle = ingestor.subscribe()
    return RemediationCoordinator(store, context, sink), handle


@pytest.fixture()
def coordinator(store, context, sink):
    coordinator, handle = _live_coordinator(store, context, sink)
    yield coordinator
    handle.unsubscribe()


@pytest.fixture()
def gated_coordinator(gated_store, context, sink):
    coordinator, handle = _live_coordinator(gated_store, context, sink)
    yield coordinator
    handle.unsubscribe()


@pytest.fixture()
def create_gated_store():
    return GatedCreateStore(reports=sample_reports(), users=USERS)


@pytest.fixture()
def create_gated_coordinator(create_gated_store, context, sink):
    coordinator, handle = _live_coordinator(create_gated_store, context, sink)
    yield coordinator
    handle.unsubscribe()
