"""
Report normalization - turns raw store documents into canonical Reports.

CRITICAL: These are deterministic functions - same input always produces
same output. Used by the stream ingestor, the aggregation engine and the
remediation coordinator, so every grouping uses the same location key.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.models.report import Report, UNKNOWN_LOCATION

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def normalize_location(location: Any) -> str:
    """
    Trim a location value; empty or missing maps to "Unknown".

    " Lagos ", "Lagos\\t" and "Lagos" all normalize to "Lagos".
    """
    if location is None:
        return UNKNOWN_LOCATION
    text = str(location).strip()
    return text or UNKNOWN_LOCATION


def normalize_category(category: Any) -> str:
    """Lowercase and trim a category; unrecognized values are kept as-is."""
    if category is None:
        return ""
    return str(category).strip().lower()


def normalize_status(status: Any) -> str:
    if status is None:
        return "new"
    text = str(status).strip().lower()
    return text or "new"


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse one timestamp value.

    Accepts datetimes (including Firestore's DatetimeWithNanoseconds),
    epoch milliseconds (as produced by client clocks) and ISO-8601 strings.
    Returns None for anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _to_utc(value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return _to_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def resolve_created_at(raw: Dict[str, Any]) -> Optional[datetime]:
    """
    Resolve the canonical ordering timestamp.

    Precedence: server timestamp (createdAt) > client timestamp
    (createdAtClient) > absent.
    """
    server = parse_timestamp(raw.get("createdAt"))
    if server is not None:
        return server
    return parse_timestamp(raw.get("createdAtClient"))


def normalize_report(raw: Dict[str, Any]) -> Optional[Report]:
    """
    Build a canonical Report from a raw store document.

    Returns None when the document has no usable id.
    """
    record_id = raw.get("id")
    if record_id is None or not str(record_id).strip():
        logger.warning("Dropping report without id")
        return None

    description = raw.get("description")
    uid = raw.get("uid")
    return Report(
        id=str(record_id),
        category=normalize_category(raw.get("type") or raw.get("category")),
        description=str(description) if description is not None else None,
        location=normalize_location(raw.get("location")),
        status=normalize_status(raw.get("status")),
        created_at=resolve_created_at(raw),
        uid=str(uid) if uid is not None else None,
        is_optimistic=bool(raw.get("optimistic", False)),
    )


def snapshot_sort_key(report: Report):
    """Sort key for newest-first ordering (use with reverse=True)."""
    return (
        report.created_at is not None,
        report.created_at or _EPOCH,
        report.id,
    )


def order_newest_first(reports: List[Report]) -> List[Report]:
    """
    Newest-first by created_at; ties by descending id; records without a
    timestamp sort last.
    """
    return sorted(reports, key=snapshot_sort_key, reverse=True)
