from app.models.report import Report, Snapshot, TrendSignal
from app.services.trend_detector import TrendDetector, describe_trend, detect_trend


def _newest_first(*categories):
    """Reports listed newest first, as a snapshot holds them."""
    return [Report(id=f"r{i}", category=category) for i, category in enumerate(categories)]


def test_rising_noise_example():
    reports = _newest_first(
        "noise", "noise", "noise", "traffic", "crowd",
        "traffic", "traffic", "traffic", "pollution", "pollution",
    )

    signal = detect_trend(reports, window=5)

    assert signal.category == "noise"
    assert signal.confidence == 0.6


def test_fewer_reports_than_window_yields_no_trend():
    signal = detect_trend(_newest_first("noise", "noise", "noise", "noise"), window=5)

    assert signal.category is None
    assert signal.confidence == 0.0


def test_short_previous_window_counts_as_zero():
    signal = detect_trend(_newest_first("crowd", "crowd", "crowd", "crowd", "crowd", "noise"), window=5)

    assert signal.category == "crowd"
    assert signal.confidence == 1.0


def test_no_positive_delta_yields_no_trend():
    reports = _newest_first(
        "noise", "crowd", "traffic", "pollution", "noise",
        "noise", "crowd", "traffic", "pollution", "noise",
    )

    assert detect_trend(reports, window=5) == TrendSignal()


def test_ties_resolve_in_category_order():
    reports = _newest_first(
        "traffic", "crowd", "traffic", "crowd", "pollution",
        "pollution", "pollution", "pollution", "pollution", "pollution",
    )

    signal = detect_trend(reports, window=5)

    assert signal.category == "crowd"
    assert signal.confidence == 0.4


def test_detector_uses_configured_window():
    snapshot = Snapshot(reports=_newest_first("noise", "noise", "crowd"), version=3)

    assert TrendDetector(window=2).detect(snapshot).category == "noise"
    assert TrendDetector(window=5).detect(snapshot).category is None


def test_describe_trend():
    assert describe_trend(TrendSignal(category="noise", confidence=0.6)) == "Likely increase in noise (conf 60%)"
    assert describe_trend(TrendSignal()) == "No strong trend detected"


def test_noise_overtaking_crowd():
    reports = _newest_first(
        "noise", "noise", "noise", "crowd", "noise",
        "crowd", "crowd", "crowd", "crowd", "noise",
    )

    assert detect_trend(reports) == TrendSignal(category="noise", confidence=0.6)
