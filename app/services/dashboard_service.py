"""
Dashboard Service - role-dependent views over the live snapshot.

WHAT EACH ROLE SEES:
✅ client: counts and hotspots over their own reports
✅ admin: counts, hotspots with samples, trend and status distribution
          over every report
✅ unset: same as client (role not assigned yet)

Authorization itself happens upstream; this service only reads the role
tag to pick the view.
"""

import logging
from typing import Dict, List, Optional

from app.models.report import Report, Snapshot
from app.models.user import Principal
from app.services.analytics_service import AnalyticsService, filter_reports, status_distribution
from app.services.trend_detector import TrendDetector, describe_trend

logger = logging.getLogger(__name__)


def visible_snapshot(principal: Principal, snapshot: Snapshot) -> Snapshot:
    """Admins see everything; everyone else sees only their own reports."""
    if principal.is_admin:
        return snapshot
    own = [report for report in snapshot.reports if report.uid == principal.uid]
    return snapshot.model_copy(update={"reports": own})


class DashboardService:
    def __init__(self, analytics: AnalyticsService, trend: TrendDetector):
        self.analytics = analytics
        self.trend = trend

    def summary(
        self,
        principal: Principal,
        snapshot: Snapshot,
        top_n: Optional[int] = None,
        lookback: Optional[int] = None,
    ) -> Dict:
        scoped = visible_snapshot(principal, snapshot)
        view = self.analytics.aggregate(scoped, top_n=top_n, lookback=lookback)

        summary = {
            "role": principal.role.value,
            "version": scoped.version,
            "stale": scoped.stale,
            "generated_at": scoped.generated_at,
            "total": view.total,
            "counts": view.counts,
            "hotspots": [bucket.model_dump() for bucket in view.hotspots],
        }

        if principal.is_admin:
            signal = self.trend.detect(scoped)
            summary["hotspots"] = [
                sample.model_dump()
                for sample in self.analytics.hotspots_with_samples(scoped, top_n=top_n, lookback=lookback)
            ]
            summary["trend"] = {**signal.model_dump(), "summary": describe_trend(signal)}
            summary["status_distribution"] = status_distribution(scoped.reports)

        return summary

    def hotspots(self, principal: Principal, snapshot: Snapshot, top_n: Optional[int] = None) -> List[Dict]:
        scoped = visible_snapshot(principal, snapshot)
        return [sample.model_dump() for sample in self.analytics.hotspots_with_samples(scoped, top_n=top_n)]

    def trend_view(self, snapshot: Snapshot) -> Dict:
        signal = self.trend.detect(snapshot)
        return {**signal.model_dump(), "summary": describe_trend(signal), "version": snapshot.version}

    def reports(
        self,
        principal: Principal,
        snapshot: Snapshot,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Report]:
        scoped = visible_snapshot(principal, snapshot)
        return filter_reports(scoped.reports, category=category, search=search)
