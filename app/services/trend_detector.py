"""
Trend Detector - which category is rising right now.

Compares category frequencies in the newest window of reports against the
window just before it. Deterministic and stateless: the answer depends only
on the snapshot passed in, so it can be recomputed from scratch at any time.

This is a heuristic, not a forecast. It holds no model and no history.
"""

import logging
from collections import Counter
from typing import List

from app.core.settings import settings
from app.models.report import CATEGORY_ORDER, Report, Snapshot, TrendSignal

logger = logging.getLogger(__name__)


def detect_trend(reports: List[Report], window: int = 5) -> TrendSignal:
    """
    Detect the rising category in a newest-first report list.

    recent = reports[0:window], previous = reports[window:2*window].
    The category with the strictly largest positive frequency delta wins;
    ties go to the earlier category in noise, crowd, traffic, pollution
    order. Confidence is min(1, delta / window).

    Fewer than `window` reports, or no positive delta, yields no category
    with zero confidence.
    """
    if window <= 0 or len(reports) < window:
        return TrendSignal()

    recent = Counter(report.category for report in reports[:window])
    previous = Counter(report.category for report in reports[window:2 * window])

    best = None
    best_delta = 0
    for category in CATEGORY_ORDER:
        delta = recent.get(category, 0) - previous.get(category, 0)
        if delta > best_delta:
            best, best_delta = category, delta

    if best is None:
        return TrendSignal()

    return TrendSignal(category=best, confidence=min(1.0, best_delta / window))


def describe_trend(signal: TrendSignal) -> str:
    """Short human-readable summary of a trend signal."""
    if not signal.category:
        return "No strong trend detected"
    return f"Likely increase in {signal.category} (conf {round(signal.confidence * 100)}%)"


class TrendDetector:
    """Snapshot-level wrapper using the configured window size."""

    def __init__(self, window: int = None):
        self.window = settings.TREND_WINDOW if window is None else window

    def detect(self, snapshot: Snapshot) -> TrendSignal:
        signal = detect_trend(snapshot.reports, self.window)
        logger.debug(f"Trend for snapshot v{snapshot.version}: {signal.category} ({signal.confidence:.2f})")
        return signal


# Global detector instance
_trend_detector = None


def get_trend_detector() -> TrendDetector:
    """Get or create TrendDetector singleton."""
    global _trend_detector
    if _trend_detector is None:
        _trend_detector = TrendDetector()
    return _trend_detector
