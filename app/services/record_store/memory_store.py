"""
In-memory report store for local development and tests.

Mirrors Firestore's listener semantics: subscribing immediately delivers
the current collection, and every write re-delivers the full matching set
to every live subscriber.
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .base import (
    BatchCallback,
    ErrorCallback,
    RawRecord,
    RecordFilter,
    RecordStore,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


class _Subscription:
    def __init__(self, record_filter: Optional[RecordFilter], on_batch: BatchCallback, on_error: ErrorCallback):
        self.record_filter = record_filter
        self.on_batch = on_batch
        self.on_error = on_error
        self.active = True


class InMemoryRecordStore(RecordStore):
    """Dict-backed store; documents keyed by id in insertion order."""

    def __init__(self, reports: Optional[List[RawRecord]] = None, users: Optional[Dict[str, RawRecord]] = None):
        self._docs: Dict[str, RawRecord] = {}
        self._subscriptions: List[_Subscription] = []
        self.users: Dict[str, RawRecord] = dict(users or {})
        for raw in reports or []:
            record_id = str(raw.get("id") or uuid.uuid4().hex[:20])
            self._docs[record_id] = {**raw, "id": record_id}

    @classmethod
    def from_json(cls, path: str) -> "InMemoryRecordStore":
        """
        Load a mock DB file shaped like the seed file:
        {"reports": {doc_id: {...}}, "users": {uid: {...}}}
        Missing file yields an empty store.
        """
        if not os.path.exists(path):
            logger.info(f"[MOCK DB] {path} not found, starting empty")
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        reports = [{**doc, "id": doc_id} for doc_id, doc in (data.get("reports") or {}).items()]
        logger.info(f"[MOCK DB] Loaded {len(reports)} reports from {path}")
        return cls(reports=reports, users=data.get("users") or {})

    def _matching(self, record_filter: Optional[RecordFilter]) -> List[RawRecord]:
        return [
            dict(doc) for doc in self._docs.values()
            if record_filter is None or record_filter.matches(doc)
        ]

    def _broadcast(self) -> None:
        for sub in list(self._subscriptions):
            if sub.active:
                sub.on_batch(self._matching(sub.record_filter))

    def subscribe(self, record_filter, on_batch, on_error) -> Unsubscribe:
        sub = _Subscription(record_filter, on_batch, on_error)
        self._subscriptions.append(sub)
        on_batch(self._matching(record_filter))

        def unsubscribe():
            sub.active = False
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

        return unsubscribe

    def emit_error(self, error: BaseException) -> None:
        """Simulate a transport failure on every live subscription."""
        for sub in list(self._subscriptions):
            if sub.active:
                sub.active = False
                self._subscriptions.remove(sub)
                sub.on_error(error)

    def put(self, raw: RawRecord) -> str:
        """Insert or replace a document as an external writer would."""
        record_id = str(raw.get("id") or uuid.uuid4().hex[:20])
        self._docs[record_id] = {**raw, "id": record_id}
        self._broadcast()
        return record_id

    def get(self, record_id: str) -> Optional[RawRecord]:
        doc = self._docs.get(record_id)
        return dict(doc) if doc is not None else None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def fetch_all(self, record_filter: Optional[RecordFilter] = None) -> List[RawRecord]:
        return self._matching(record_filter)

    async def update_status(self, record_id: str, status: str) -> None:
        if record_id not in self._docs:
            raise LookupError(f"No report with id {record_id}")
        self._docs[record_id]["status"] = status
        self._broadcast()

    async def create_record(self, fields: RawRecord) -> Tuple[str, RawRecord]:
        record_id = uuid.uuid4().hex[:20]
        doc = {**fields, "id": record_id, "createdAt": datetime.now(timezone.utc)}
        self._docs[record_id] = doc
        self._broadcast()
        return record_id, dict(doc)
