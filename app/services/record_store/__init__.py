from .base import RecordFilter, RecordStore
from .memory_store import InMemoryRecordStore
from .resolver import get_record_store

__all__ = ["RecordFilter", "RecordStore", "InMemoryRecordStore", "get_record_store"]
