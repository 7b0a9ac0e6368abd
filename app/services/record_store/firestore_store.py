import asyncio
import logging
import time
from functools import partial
from typing import List, Optional, Tuple

from firebase_admin import firestore

from app.config.firebase import get_db
from app.core.settings import settings
from app.utils.firestore_helpers import where_filter

from .base import RawRecord, RecordFilter, RecordStore, Unsubscribe

logger = logging.getLogger(__name__)


def _doc_to_raw(doc) -> RawRecord:
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


class FirestoreRecordStore(RecordStore):
    """
    Firestore-backed report store.

    - subscribe() uses a query watch (on_snapshot); callbacks arrive on the
      watch thread and always carry the full matching result set.
    - Writes use the synchronous client inside the default executor so the
      event loop never blocks.
    """

    def __init__(self, db=None, collection: Optional[str] = None):
        self.db = db if db is not None else get_db()
        self.collection = collection or settings.REPORTS_COLLECTION

    def _query(self, record_filter: Optional[RecordFilter]):
        query = self.db.collection(self.collection)
        if record_filter is not None:
            query = where_filter(query, record_filter.field, "==", record_filter.value)
        return query

    def subscribe(self, record_filter, on_batch, on_error) -> Unsubscribe:
        query = self._query(record_filter)

        def _on_snapshot(docs, changes, read_time):
            try:
                on_batch([_doc_to_raw(doc) for doc in docs])
            except Exception as e:
                logger.error(f"❌ Failed to deliver reports batch: {e}", exc_info=True)
                on_error(e)

        watch = query.on_snapshot(_on_snapshot)
        logger.info(f"[FIRESTORE] Listening to '{self.collection}' (filter={record_filter})")
        return watch.unsubscribe

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    async def fetch_all(self, record_filter: Optional[RecordFilter] = None) -> List[RawRecord]:
        docs = await self._run(lambda: list(self._query(record_filter).stream()))
        return [_doc_to_raw(doc) for doc in docs]

    async def update_status(self, record_id: str, status: str) -> None:
        doc_ref = self.db.collection(self.collection).document(record_id)
        await self._run(doc_ref.update, {"status": status})
        logger.info(f"Report {record_id} status set to {status}")

    async def create_record(self, fields: RawRecord) -> Tuple[str, RawRecord]:
        doc_ref = self.db.collection(self.collection).document()  # Auto-generate unique ID
        payload = {
            **fields,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "createdAtClient": int(time.time() * 1000),
        }
        await self._run(doc_ref.set, payload)
        logger.info(f"Report saved to Firestore: {doc_ref.id}")

        # Read back so the server timestamp is resolved
        snap = await self._run(doc_ref.get)
        data = snap.to_dict() if snap.exists else {k: v for k, v in payload.items() if k != "createdAt"}
        data["id"] = doc_ref.id
        return doc_ref.id, data
