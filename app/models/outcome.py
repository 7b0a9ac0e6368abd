"""
Outcome models for remediation operations.

Every operation produces exactly one outcome so that "busy" and
"failure" are never mistaken for "done".
"""

from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Optional, List
from enum import Enum


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    BUSY = "busy"


class ErrorKind(str, Enum):
    VALIDATION_FAILURE = "validation_failure"
    MUTATION_FAILURE = "mutation_failure"


class RemediationOutcome(BaseModel):
    """
    Structured result of mark_status, cleanup_location or submit_report.
    Also the payload handed to the notification collaborator.
    """
    operation: str = Field(..., description="mark_status | cleanup_location | submit_report")
    status: OutcomeStatus
    error_kind: Optional[ErrorKind] = None
    reason: Optional[str] = None
    record_id: Optional[str] = None
    location: Optional[str] = None
    target_status: Optional[str] = None
    succeeded_ids: List[str] = Field(default_factory=list)
    failed_ids: List[str] = Field(default_factory=list)
    skipped_ids: List[str] = Field(default_factory=list)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS
