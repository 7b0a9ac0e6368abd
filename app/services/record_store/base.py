from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from pydantic import BaseModel

logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]
BatchCallback = Callable[[List[RawRecord]], None]
ErrorCallback = Callable[[BaseException], None]
Unsubscribe = Callable[[], None]


class RecordFilter(BaseModel):
    """Equality filter applied by the store, e.g. records owned by uid X."""
    field: str
    value: Any

    def matches(self, raw: RawRecord) -> bool:
        return raw.get(self.field) == self.value

    @classmethod
    def owned_by(cls, uid: str) -> "RecordFilter":
        return cls(field="uid", value=uid)


class RecordStore(ABC):
    """
    Abstract report store.

    Contract:
    - subscribe() delivers the full matching collection as a list of raw
      dicts (each carrying its document "id") on every change batch, and
      returns a callable that releases the subscription.
    - Batches may be delivered on a foreign thread.
    - on_error() receives transport errors; the subscription is then dead.
    - update_status() and create_record() raise on failure.
    """

    @abstractmethod
    def subscribe(
        self,
        record_filter: Optional[RecordFilter],
        on_batch: BatchCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        raise NotImplementedError

    @abstractmethod
    async def fetch_all(self, record_filter: Optional[RecordFilter] = None) -> List[RawRecord]:
        raise NotImplementedError

    @abstractmethod
    async def update_status(self, record_id: str, status: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def create_record(self, fields: RawRecord) -> Tuple[str, RawRecord]:
        """Returns (confirmed id, confirmed fields)."""
        raise NotImplementedError
