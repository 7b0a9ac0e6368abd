"""
Report endpoints - API routes for report submission and snapshot listing.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.models.report import Report, ReportCreate
from app.models.user import Principal
from app.services.dashboard_service import DashboardService
from app.services.errors import IngestFailure
from app.services.pulse_runtime import get_runtime
from app.routes.remediation import outcome_response
from app.utils.security import get_current_principal, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("", response_model=List[Report])
async def get_reports(
    category: Optional[str] = Query(None, description="Category filter ('all' for no filter)"),
    search: Optional[str] = Query(None, description="Matches description, location or uid"),
    principal: Principal = Depends(get_current_principal),
):
    """
    List reports from the live snapshot, newest first.
    Admins see every report; everyone else sees their own.
    """
    runtime = get_runtime()
    dashboard = DashboardService(runtime.analytics, runtime.trend)
    return dashboard.reports(principal, runtime.snapshot(), category=category, search=search)


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_report(report: ReportCreate, principal: Principal = Depends(get_current_principal)):
    """
    Submit a new citizen report.

    The report shows up in the live snapshot immediately (optimistic) and
    is replaced by the stored record once the store confirms it.
    """
    logger.info(f"📝 POST /reports - {principal.uid}: category={report.category.value}")
    outcome = await get_runtime().coordinator.submit_report(
        uid=principal.uid,
        category=report.category.value,
        description=report.description,
        location=report.location,
    )
    return outcome_response(outcome, success_code=status.HTTP_201_CREATED)


@router.post("/refresh")
async def refresh_reports(principal: Principal = Depends(require_admin)):
    """
    Fetch the report collection once and publish it as the new snapshot.
    """
    try:
        snapshot = await get_runtime().ingestor.refresh()
    except IngestFailure as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to fetch reports: {str(e)}"
        )
    return {
        "success": True,
        "message": f"Fetched {len(snapshot.reports)} reports",
        "version": snapshot.version,
    }
