"""
Error taxonomy for the pulse engine.

- IngestFailure: subscription/transport error. Recoverable; the last good
  snapshot is kept and marked stale.
- MutationFailure: a single-record (or per-item bulk) status write failed.
  Reported, never retried automatically.
- BusyError: a conflicting operation on the same record/location is
  already in flight. Not an error of the underlying data.
- ValidationFailure: malformed input, rejected before any I/O.
"""

from typing import Optional


class PulseError(Exception):
    """Base class for all pulse engine errors."""


class IngestFailure(PulseError):
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class MutationFailure(PulseError):
    def __init__(self, reason: str, record_id: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.record_id = record_id


class BusyError(PulseError):
    def __init__(self, key: str, scope: str = "record"):
        super().__init__(f"{scope} '{key}' is already being updated")
        self.key = key
        self.scope = scope


class ValidationFailure(PulseError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
