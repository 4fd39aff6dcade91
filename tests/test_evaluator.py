"""Tests for timing classification and the sequence origin."""

import math

import pytest

from sightread.evaluator import TimingAnalyzer, TimingThresholds, classify_drift, timing_score
from sightread.models import ExpectedNote, TimingCategory

THRESHOLDS = TimingThresholds(accurate=0.025, early=0.05, late=0.075)


def _note(start, index=0):
    return ExpectedNote(start_time=start, duration=0.5, pitches=frozenset({60}), sequence_index=index)


def _analyzer(origin=10.0):
    analyzer = TimingAnalyzer(bpm=120)
    analyzer.start_session(origin=origin)
    return analyzer


def test_thresholds_scale_with_bpm():
    t = TimingThresholds.from_bpm(120)
    assert t.accurate == pytest.approx(0.025)
    assert t.early == pytest.approx(0.05)
    assert t.late == pytest.approx(0.075)
    slow = TimingThresholds.from_bpm(60)
    assert slow.late == pytest.approx(0.15)


def test_accurate_attempt():
    analyzer = _analyzer()
    judgment = analyzer.record_attempt(_note(0.0), 10.01)
    assert judgment.category is TimingCategory.ACCURATE
    assert judgment.timing_score == 1.0
    assert analyzer.sequence_origin == 10.0


def test_pause_moves_origin_by_excess():
    analyzer = _analyzer()
    judgment = analyzer.record_attempt(_note(0.0), 10.09)
    assert judgment.category is TimingCategory.PAUSE
    assert judgment.timing_score == 0.0
    assert judgment.pause_duration == pytest.approx(0.015)
    assert judgment.raw_drift == pytest.approx(0.09)
    assert judgment.drift == pytest.approx(0.075)
    assert analyzer.sequence_origin == pytest.approx(10.015)


@pytest.mark.parametrize(
    "drift, expected",
    [
        (0.0, TimingCategory.ACCURATE),
        (0.025, TimingCategory.ACCURATE),
        (-0.025, TimingCategory.ACCURATE),
        (0.026, TimingCategory.LATE),
        (-0.026, TimingCategory.EARLY),
        (0.075, TimingCategory.LATE),
        (0.075 + 1e-6, TimingCategory.PAUSE),
        (-0.05, TimingCategory.EARLY),
        (-0.05 - 1e-6, TimingCategory.TOO_EARLY),
    ],
)
def test_classification_boundaries(drift, expected):
    assert classify_drift(drift, THRESHOLDS) is expected


def test_timing_score_table():
    assert timing_score(0.0) == 1.0
    assert timing_score(0.025) == 1.0
    assert timing_score(0.05) == pytest.approx(0.75)
    assert timing_score(0.1) == pytest.approx(0.5)
    assert timing_score(0.2) == pytest.approx(0.25)
    assert timing_score(0.3) == 0.0
    assert timing_score(0.01, TimingCategory.PAUSE) == 0.0
    assert timing_score(math.nan) == 0.0


def test_first_attempt_sets_origin():
    analyzer = TimingAnalyzer(bpm=120)
    judgment = analyzer.record_attempt(_note(0.0), 42.0)
    assert analyzer.sequence_origin == 42.0
    assert judgment.drift == 0.0
    assert judgment.category is TimingCategory.ACCURATE


def test_too_early_attempt_is_logged():
    analyzer = _analyzer()
    judgment = analyzer.record_attempt(_note(1.0), 10.9)
    assert judgment.category is TimingCategory.TOO_EARLY
    assert not judgment.is_acceptable
    assert analyzer.get_timing_metrics().early_notes == 1


def test_on_time_note_after_pause_is_not_a_pause():
    analyzer = _analyzer()
    before = analyzer.sequence_origin
    pause = analyzer.record_attempt(_note(0.0), 10.3)
    after = analyzer.sequence_origin
    assert after > before
    assert after - before == pytest.approx(pause.pause_duration)

    nxt = _note(0.5, index=1)
    judgment = analyzer.record_attempt(nxt, after + nxt.start_time)
    assert judgment.category is not TimingCategory.PAUSE
    assert judgment.category is TimingCategory.ACCURATE


def test_cumulative_drift_ignores_pauses():
    analyzer = _analyzer(origin=0.0)
    analyzer.record_attempt(_note(0.0, 0), 0.04)
    analyzer.record_attempt(_note(0.5, 1), 2.0)
    metrics = analyzer.get_timing_metrics()
    assert metrics.cumulative_drift == pytest.approx(0.04)
    assert metrics.pause_notes == 1
    assert metrics.pause_metrics.pause_count == 1


def test_detailed_analysis_tracks_drift_over_time():
    analyzer = _analyzer(origin=0.0)
    analyzer.record_attempt(_note(0.0, 0), 0.0)
    analyzer.record_attempt(_note(0.5, 1), 0.53)
    analyzer.record_attempt(_note(1.0, 2), 2.0)

    analysis = analyzer.get_detailed_analysis()
    assert analysis["judgments"] == analyzer.judgments
    assert analysis["metrics"] == analyzer.get_timing_metrics()
    indices, times, drifts, categories = zip(*analysis["drift_over_time"])
    assert indices == (0, 1, 2)
    assert times == (0.0, 0.53, 2.0)
    assert drifts == pytest.approx((0.0, 0.03, 0.075))
    assert categories == ("accurate", "late", "pause")


def test_timing_metrics_idempotent():
    analyzer = _analyzer(origin=0.0)
    for i, offset in enumerate((0.0, 0.03, -0.02, 0.2)):
        analyzer.record_attempt(_note(i * 0.5, i), i * 0.5 + offset)
    assert analyzer.get_timing_metrics() == analyzer.get_timing_metrics()


def test_non_finite_attempt_does_not_poison_statistics():
    analyzer = _analyzer()
    analyzer.record_attempt(_note(0.0, 0), 10.0)
    nan_judgment = analyzer.record_attempt(_note(0.5, 1), math.nan)
    analyzer.record_attempt(_note(1.0, 2), 11.01)

    assert nan_judgment.timing_score == 0.0
    metrics = analyzer.get_timing_metrics()
    assert metrics.total_notes == 3
    assert metrics.average_drift == pytest.approx(0.005)
    assert math.isfinite(metrics.drift_std_dev)
    assert math.isfinite(metrics.timing_precision)
    assert analyzer.sequence_origin == 10.0


def test_reanchor_ignores_non_finite_origin():
    analyzer = _analyzer()
    analyzer.reanchor(math.inf, 0.5)
    assert analyzer.sequence_origin == 10.0
    analyzer.reanchor(12.0, 0.5)
    assert analyzer.sequence_origin == 11.5


def test_missing_start_time_rejected():
    analyzer = _analyzer()
    with pytest.raises(ValueError):
        analyzer.record_attempt(ExpectedNote(start_time=None, duration=0.5, pitches=frozenset({60})), 10.0)


def test_start_session_clears_log():
    analyzer = _analyzer()
    analyzer.record_attempt(_note(0.0), 10.0)
    analyzer.start_session()
    assert analyzer.judgments == []
    assert analyzer.sequence_origin is None
    assert analyzer.get_timing_metrics().total_notes == 0


def test_pattern_needs_three_samples():
    analyzer = _analyzer(origin=0.0)
    analyzer.record_attempt(_note(0.0, 0), 0.04)
    analyzer.record_attempt(_note(0.5, 1), 0.54)
    assert analyzer.detect_pattern().pattern == "insufficient_data"


@pytest.mark.parametrize(
    "offset, pattern",
    [(0.04, "consistently_late"), (-0.04, "consistently_early"), (0.0, "balanced")],
)
def test_pattern_detection(offset, pattern):
    analyzer = _analyzer(origin=0.0)
    for i in range(5):
        analyzer.record_attempt(_note(i * 0.5, i), i * 0.5 + offset)
    detected = analyzer.detect_pattern()
    assert detected.pattern == pattern
    assert detected.recommendation


def test_inconsistent_pattern():
    analyzer = _analyzer(origin=0.0)
    for i, offset in enumerate((-0.11, 0.05, 0.05, 0.01)):
        analyzer.record_attempt(_note(i * 2.0, i), i * 2.0 + offset)
    detected = analyzer.detect_pattern()
    assert detected.pattern == "inconsistent"
    assert detected.confidence > 0
