import logging
from typing import Optional

from app.core.settings import settings
from .base import RecordStore
from .memory_store import InMemoryRecordStore

logger = logging.getLogger(__name__)

_store_instance: Optional[RecordStore] = None


def get_record_store() -> RecordStore:
    """
    Resolve the active report store based on settings.

    Rules:
    - USE_MOCK_DB=true: in-memory store loaded from MOCK_DB_PATH.
    - Otherwise: Firestore (raises if Firestore cannot be initialized).
    """
    global _store_instance
    if _store_instance is not None:
        return _store_instance

    if settings.USE_MOCK_DB:
        _store_instance = InMemoryRecordStore.from_json(settings.MOCK_DB_PATH)
        logger.info("Record store initialized: memory")
        return _store_instance

    from .firestore_store import FirestoreRecordStore

    _store_instance = FirestoreRecordStore()
    logger.info("Record store initialized: firestore")
    return _store_instance
