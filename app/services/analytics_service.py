"""
Analytics Service - derived views over a report snapshot.

Counts per category, location buckets, ranked hotspots and the list
filters used by the dashboards. Everything here is recomputed wholesale
from one complete snapshot and never raises on missing optional fields.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional

from app.core.settings import settings
from app.models.report import (
    AggregateView,
    CATEGORY_ORDER,
    HotspotSample,
    LocationBucket,
    Report,
    Snapshot,
)
from app.utils.report_normalizer import normalize_location

logger = logging.getLogger(__name__)


def count_by_category(reports: List[Report]) -> Dict[str, int]:
    """Count reports per fixed category; unrecognized categories are skipped."""
    counts = {category: 0 for category in CATEGORY_ORDER}
    for report in reports:
        if report.category in counts:
            counts[report.category] += 1
    return counts


def location_buckets(reports: List[Report]) -> List[LocationBucket]:
    """
    Group reports by normalized location, highest count first.
    Equal counts keep the order in which the location was first seen.
    """
    counts: Dict[str, int] = {}
    for report in reports:
        location = normalize_location(report.location)
        counts[location] = counts.get(location, 0) + 1

    buckets = [LocationBucket(location=location, count=count) for location, count in counts.items()]
    buckets.sort(key=lambda bucket: bucket.count, reverse=True)
    return buckets


def rank_hotspots(reports: List[Report], top_n: int = 5) -> List[LocationBucket]:
    """Top locations by report count; top_n <= 0 yields an empty list."""
    if top_n <= 0:
        return []
    return location_buckets(reports)[:top_n]


def hotspot_samples(reports: List[Report], hotspots: List[LocationBucket]) -> List[HotspotSample]:
    """Attach the newest report at each hotspot (reports are newest-first)."""
    newest: Dict[str, Report] = {}
    for report in reports:
        newest.setdefault(normalize_location(report.location), report)

    return [
        HotspotSample(location=bucket.location, count=bucket.count, sample=newest.get(bucket.location))
        for bucket in hotspots
    ]


def status_distribution(reports: List[Report]) -> Dict[str, int]:
    """Get distribution by status."""
    distribution = defaultdict(int)
    for report in reports:
        distribution[report.status or "new"] += 1
    return dict(distribution)


def filter_reports(
    reports: List[Report],
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Report]:
    """
    Filter a report list.

    Args:
        category: Exact category to keep ("all" or None keeps everything)
        search: Case-insensitive substring matched against description,
            location and uid
    """
    wanted = (category or "all").strip().lower()
    needle = (search or "").strip().lower()

    filtered = []
    for report in reports:
        if wanted != "all" and report.category != wanted:
            continue
        if needle:
            haystacks = [report.description or "", report.location or "", report.uid or ""]
            if not any(needle in text.lower() for text in haystacks):
                continue
        filtered.append(report)
    return filtered


class AnalyticsService:
    """Service for generating snapshot analytics."""

    def __init__(self, default_top_n: Optional[int] = None, default_lookback: Optional[int] = None):
        self.default_top_n = settings.HOTSPOT_TOP_N if default_top_n is None else default_top_n
        self.default_lookback = settings.ANALYSIS_LOOKBACK if default_lookback is None else default_lookback

    def _window(self, reports: List[Report], lookback: Optional[int]) -> List[Report]:
        limit = self.default_lookback if lookback is None else lookback
        if limit is None or limit <= 0:
            return list(reports)
        return list(reports[:limit])

    def aggregate(
        self,
        snapshot: Snapshot,
        top_n: Optional[int] = None,
        lookback: Optional[int] = None,
    ) -> AggregateView:
        """
        Produce counts and ranked hotspots for one snapshot.

        Args:
            snapshot: Complete newest-first snapshot
            top_n: Number of hotspots to keep (default HOTSPOT_TOP_N)
            lookback: Only consider the newest N reports (default: all)
        """
        reports = self._window(snapshot.reports, lookback)
        logger.debug(f"Aggregating {len(reports)} of {len(snapshot.reports)} reports (snapshot v{snapshot.version})")
        return AggregateView(
            counts=count_by_category(reports),
            hotspots=rank_hotspots(reports, self.default_top_n if top_n is None else top_n),
            total=len(reports),
        )

    def hotspots_with_samples(
        self,
        snapshot: Snapshot,
        top_n: Optional[int] = None,
        lookback: Optional[int] = None,
    ) -> List[HotspotSample]:
        reports = self._window(snapshot.reports, lookback)
        hotspots = rank_hotspots(reports, self.default_top_n if top_n is None else top_n)
        return hotspot_samples(snapshot.reports, hotspots)


# Global service instance
_analytics_service = None


def get_analytics_service() -> AnalyticsService:
    """Get or create AnalyticsService singleton."""
    global _analytics_service
    if _analytics_service is None:
        _analytics_service = AnalyticsService()
    return _analytics_service
