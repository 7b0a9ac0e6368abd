"""
Pydantic models for citizen reports and the views derived from them.
These models handle validation for report submission, snapshots and responses.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict
from enum import Enum


class ReportCategory(str, Enum):
    """
    Fixed set of incident categories.

    Declaration order is significant: the trend detector breaks ties
    in this order.
    """
    NOISE = "noise"
    CROWD = "crowd"
    TRAFFIC = "traffic"
    POLLUTION = "pollution"


CATEGORY_ORDER: List[str] = [category.value for category in ReportCategory]

UNKNOWN_LOCATION = "Unknown"


class Report(BaseModel):
    """
    Canonical in-memory shape of a report.

    Every record reaching a consumer has already been normalized:
    category lowercased, location trimmed (or "Unknown"), created_at
    resolved from server timestamp > client timestamp > absent.
    """
    id: str = Field(..., description="Firestore document ID (or temp-<ms> while optimistic)")
    category: str = Field(default="", description="Lowercased category; unrecognized values are preserved")
    description: Optional[str] = None
    location: str = Field(default=UNKNOWN_LOCATION, description="Trimmed location, never empty")
    status: str = Field(default="new", description="Lifecycle status: new, cleaned or resolved")
    created_at: Optional[datetime] = Field(default=None, description="Canonical ordering timestamp (UTC)")
    uid: Optional[str] = Field(default=None, description="Owner of the report")
    is_optimistic: bool = Field(default=False, description="True while awaiting store confirmation")


class ReportCreate(BaseModel):
    """
    Model for creating a new report (incoming POST request).
    These are the fields citizens provide when submitting a report.
    """
    category: ReportCategory = Field(..., description="Incident category")
    description: Optional[str] = Field(None, max_length=1000, description="What the citizen observed")
    location: Optional[str] = Field(None, max_length=200, description="Free-text location")

    class Config:
        json_schema_extra = {
            "example": {
                "category": "noise",
                "description": "Generator running all night behind the market.",
                "location": "Lagos",
            }
        }
        extra = "ignore"


class Snapshot(BaseModel):
    """
    Complete, ordered, self-consistent view of all visible reports.
    Consumers always replace their working copy wholesale.
    """
    reports: List[Report] = Field(default_factory=list)
    version: int = 0
    generated_at: Optional[datetime] = None
    stale: bool = Field(default=False, description="True after an ingest failure until the next good batch")


class LocationBucket(BaseModel):
    """Derived, never persisted: number of reports at one normalized location."""
    location: str
    count: int


class HotspotSample(BaseModel):
    """Hotspot with the newest report seen at that location."""
    location: str
    count: int
    sample: Optional[Report] = None


class TrendSignal(BaseModel):
    """Best-guess rising category from the sliding-window comparison."""
    category: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class AggregateView(BaseModel):
    """Counts and ranked hotspots for one snapshot."""
    counts: Dict[str, int]
    hotspots: List[LocationBucket] = Field(default_factory=list)
    total: int = 0


class StatusUpdateRequest(BaseModel):
    """Request to change the status of a single report."""
    status: str = Field(..., description="Target status: cleaned or resolved")


class CleanupRequest(BaseModel):
    """Request to mark every report at a location as cleaned."""
    location: str = Field(..., max_length=200, description="Location key (trimmed before matching)")
