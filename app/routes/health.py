"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and feed status.
"""

from fastapi import APIRouter
from app.core.settings import settings
from app.services.pulse_runtime import get_runtime
from datetime import datetime


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/ingest")
async def ingest_health():
    """
    Report feed status.

    "degraded" means the feed failed and views are served from the last
    good (stale) snapshot.
    """
    runtime = get_runtime()
    snapshot = runtime.snapshot()
    error = runtime.ingestor.last_error

    return {
        "status": "degraded" if (error or snapshot.stale or not runtime.running) else "healthy",
        "subscribed": runtime.running,
        "snapshot_version": snapshot.version,
        "report_count": len(snapshot.reports),
        "stale": snapshot.stale,
        "last_error": str(error) if error else None,
        "busy_records": sorted(runtime.context.busy_records.busy_keys),
        "busy_locations": sorted(runtime.context.busy_locations.busy_keys),
        "timestamp": datetime.utcnow().isoformat()
    }
