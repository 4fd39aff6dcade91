"""Tests for performance metrics, grading and mistake analysis."""

import pytest

from sightread.metrics import (
    CORRECT,
    EARLY_NOTE,
    UNEXPECTED_NOTE,
    WRONG_NOTE,
    PerformanceMetrics,
    calculate_grade,
)
from sightread.models import ExpectedNote


def _note(index):
    return ExpectedNote(start_time=index * 0.5, duration=0.5, pitches=frozenset({60}), sequence_index=index)


def _play(metrics, outcomes):
    """Feed 'c' (correct) and 'w' (wrong) outcomes in order."""
    index = 0
    for t, outcome in enumerate(outcomes):
        if outcome == "c":
            metrics.record_correct_note(_note(index), float(t))
            index += 1
        else:
            metrics.record_wrong_note(_note(index), 61, float(t))


def test_accuracy_with_trailing_streak():
    metrics = PerformanceMetrics()
    _play(metrics, "w" + "c" * 9)
    summary = metrics.get_performance_metrics()
    assert summary.note_accuracy == pytest.approx(0.9)
    assert summary.longest_streak == 9


def test_longest_streak_with_mistake_in_middle():
    metrics = PerformanceMetrics()
    _play(metrics, "cccc" + "w" + "ccccc")
    summary = metrics.get_performance_metrics()
    assert summary.note_accuracy == pytest.approx(0.9)
    assert summary.longest_streak == 5
    assert metrics.streak_history == [4]


def test_longest_streak_never_decreases():
    metrics = PerformanceMetrics()
    seen = []
    for outcome in "ccwcwccccw":
        _play(metrics, outcome)
        seen.append(metrics.longest_streak)
    assert seen == sorted(seen)


def test_overall_score_perfect_session():
    metrics = PerformanceMetrics()
    metrics.start_session(0.0)
    _play(metrics, "c" * 10)
    metrics.end_session(10.0)
    summary = metrics.get_performance_metrics()
    assert summary.performed_bpm == pytest.approx(60.0)
    assert summary.consistency_score == pytest.approx(1.0)
    assert summary.overall_score == pytest.approx(1.0)
    assert calculate_grade(summary.overall_score) == "A+"


def test_overall_score_weights():
    metrics = PerformanceMetrics()
    metrics.start_session(0.0)
    _play(metrics, "cccc" + "w" + "ccccc")
    metrics.end_session(30.0)
    summary = metrics.get_performance_metrics()
    # 9 notes in 30 s -> 18 BPM; streak history [4] -> consistency 0.4
    expected = 0.9 * 0.4 + 0.4 * 0.3 + (18.0 / 60.0) * 0.3
    assert summary.consistency_score == pytest.approx(0.4)
    assert summary.overall_score == pytest.approx(expected)


@pytest.mark.parametrize(
    "score, grade",
    [
        (1.0, "A+"), (0.95, "A+"), (0.92, "A"), (0.85, "A-"), (0.8, "B+"),
        (0.76, "B"), (0.7, "B-"), (0.65, "C+"), (0.6, "C"), (0.55, "C-"),
        (0.5, "D"), (0.49, "F"), (0.0, "F"),
    ],
)
def test_grade_ladder(score, grade):
    assert calculate_grade(score) == grade


def test_no_mistakes_analysis():
    metrics = PerformanceMetrics()
    _play(metrics, "ccc")
    analysis = metrics.get_mistake_analysis()
    assert analysis.total_mistakes == 0
    assert analysis.recommendations


def test_mistake_analysis_matches_counts():
    metrics = PerformanceMetrics()
    for t in range(4):
        metrics.record_early_note(_note(0), float(t), -0.2)
    metrics.record_wrong_note(_note(0), 62, 5.0)
    metrics.record_unexpected_note(70, 6.0)

    analysis = metrics.get_mistake_analysis()
    assert analysis.total_mistakes == 6
    assert analysis.mistake_types == {WRONG_NOTE: 1, EARLY_NOTE: 4, UNEXPECTED_NOTE: 1}
    assert [p.description for p in analysis.patterns] == ["Tendency to rush ahead"]
    assert analysis.recommendations
    assert metrics.get_performance_metrics().early_notes == 4


def test_note_reading_pattern():
    metrics = PerformanceMetrics()
    _play(metrics, "wwwwc")
    analysis = metrics.get_mistake_analysis()
    assert [p.kind for p in analysis.patterns] == ["accuracy"]
    assert any("note accuracy" in r for r in analysis.recommendations)


def test_unexpected_note_breaks_streak():
    metrics = PerformanceMetrics()
    _play(metrics, "ccc")
    metrics.record_unexpected_note(72, 10.0)
    assert metrics.current_streak == 0
    assert metrics.error_count == 1


def test_notes_reached_and_progress():
    metrics = PerformanceMetrics()
    metrics.set_total_expected_notes(4)
    _play(metrics, "cc")
    metrics.update_progress(2, 4)
    summary = metrics.get_performance_metrics()
    assert summary.notes_reached == 2
    assert summary.sequence_progress == 0.5
    assert summary.total_notes_expected == 4


def test_event_log_in_time_order():
    metrics = PerformanceMetrics()
    metrics.record_correct_note(_note(0), 1.0)
    metrics.record_unexpected_note(70, 0.5)
    metrics.record_correct_note(_note(1), 2.0)
    kinds = [e.kind for e in metrics.get_detailed_event_log()]
    assert kinds == [UNEXPECTED_NOTE, CORRECT, CORRECT]


def test_empty_session_is_safe():
    summary = PerformanceMetrics().get_performance_metrics()
    assert summary.note_accuracy == 0.0
    assert summary.overall_score == 0.0
