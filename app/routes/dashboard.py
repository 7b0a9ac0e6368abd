"""
Dashboard endpoints - counts, hotspots and trend over the live snapshot.

Views are recomputed from one complete snapshot on every request.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.models.user import Principal
from app.services.dashboard_service import DashboardService
from app.services.pulse_runtime import get_runtime
from app.utils.security import get_current_principal, require_admin

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def _dashboard() -> DashboardService:
    runtime = get_runtime()
    return DashboardService(runtime.analytics, runtime.trend)


@router.get("/summary")
async def dashboard_summary(
    top_n: Optional[int] = Query(None, description="Number of hotspots (default HOTSPOT_TOP_N)"),
    lookback: Optional[int] = Query(None, ge=1, description="Only consider the newest N reports"),
    principal: Principal = Depends(get_current_principal),
):
    """
    Role-dependent summary.

    - client/unset: counts and hotspots over the caller's own reports
    - admin: all reports, plus hotspot samples, trend and status distribution
    """
    return _dashboard().summary(principal, get_runtime().snapshot(), top_n=top_n, lookback=lookback)


@router.get("/hotspots")
async def dashboard_hotspots(
    top_n: Optional[int] = Query(None, description="Number of hotspots (default HOTSPOT_TOP_N)"),
    principal: Principal = Depends(get_current_principal),
):
    """Ranked hotspots with the newest report at each location."""
    return _dashboard().hotspots(principal, get_runtime().snapshot(), top_n=top_n)


@router.get("/trend")
async def dashboard_trend(principal: Principal = Depends(require_admin)):
    """
    Rising category over the newest reports (admin only).

    This is a deterministic window comparison, NOT a prediction.
    """
    return _dashboard().trend_view(get_runtime().snapshot())
