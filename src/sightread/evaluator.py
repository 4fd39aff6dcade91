"""Timing evaluation — classify note attempts against a floating sequence origin."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from sightread.config import (
    ACCURATE_RATIO,
    EARLY_RATIO,
    LATE_RATIO,
    PATTERN_CENTERED_S,
    PATTERN_DRIFT_S,
    PATTERN_MIN_SAMPLES,
    PATTERN_SCATTER_S,
    PATTERN_SHARE,
    PATTERN_WINDOW,
    PRECISION_STDDEV_S,
    SCORE_GOOD_S,
    SCORE_OK_S,
    SCORE_PERFECT_S,
    SCORE_POOR_S,
    TIMER_EPSILON_S,
)
from sightread.models import (
    ExpectedNote,
    NoteJudgment,
    PauseMetrics,
    TimingCategory,
    TimingMetrics,
    TimingPattern,
)

logger = logging.getLogger(__name__)

_ACCEPTED = (TimingCategory.ACCURATE, TimingCategory.EARLY, TimingCategory.LATE)

_RECOMMENDATIONS = {
    "consistently_early": "Try to slow down and wait for the beat. Focus on feeling the pulse.",
    "consistently_late": "Try to anticipate the beat better. Practice with a metronome.",
    "inconsistent": "Work on timing consistency. Practice slow, steady rhythms first.",
    "balanced": "Good timing! Try increasing tempo or complexity.",
}


@dataclass(frozen=True)
class TimingThresholds:
    """Classification bounds in seconds."""

    accurate: float
    early: float
    late: float

    @classmethod
    def from_bpm(
        cls,
        bpm: float,
        accurate_ratio: float = ACCURATE_RATIO,
        early_ratio: float = EARLY_RATIO,
        late_ratio: float = LATE_RATIO,
    ) -> TimingThresholds:
        beat_duration = 60.0 / bpm
        return cls(
            accurate=beat_duration * accurate_ratio,
            early=beat_duration * early_ratio,
            late=beat_duration * late_ratio,
        )


def classify_drift(drift: float, thresholds: TimingThresholds) -> TimingCategory:
    """Map a signed drift (seconds, negative = early) to a timing category.

    A drift exactly on a threshold belongs to the inner category. Comparisons
    allow for TIMER_EPSILON_S of float error so that a drift rebuilt from an
    adjusted origin lands on the boundary it was moved to.
    """
    if abs(drift) <= thresholds.accurate + TIMER_EPSILON_S:
        return TimingCategory.ACCURATE
    if drift < -thresholds.early - TIMER_EPSILON_S:
        return TimingCategory.TOO_EARLY
    if drift > thresholds.late + TIMER_EPSILON_S:
        return TimingCategory.PAUSE
    if drift < 0:
        return TimingCategory.EARLY
    return TimingCategory.LATE


def timing_score(absolute_drift: float, category: TimingCategory | None = None) -> float:
    """Continuous 0-1 credit for an attempt, piecewise linear in absolute drift."""
    if category is TimingCategory.PAUSE or not math.isfinite(absolute_drift):
        return 0.0
    if absolute_drift <= SCORE_PERFECT_S:
        return 1.0
    if absolute_drift <= SCORE_GOOD_S:
        ratio = (absolute_drift - SCORE_PERFECT_S) / (SCORE_GOOD_S - SCORE_PERFECT_S)
        return 1.0 - ratio * 0.25
    if absolute_drift <= SCORE_OK_S:
        ratio = (absolute_drift - SCORE_GOOD_S) / (SCORE_OK_S - SCORE_GOOD_S)
        return 0.75 - ratio * 0.25
    if absolute_drift <= SCORE_POOR_S:
        ratio = (absolute_drift - SCORE_OK_S) / (SCORE_POOR_S - SCORE_OK_S)
        return 0.5 - ratio * 0.25
    return 0.0


class TimingAnalyzer:
    """Stateful timing judge that owns the sequence origin.

    The origin is the wall-clock instant treated as elapsed time zero. It is
    set by the first attempt (or explicitly by ``start_session``), moved
    forward by pauses, and re-anchored by ``reanchor``. Every change goes
    through ``_move_origin``.
    """

    def __init__(
        self,
        bpm: float,
        accurate_ratio: float = ACCURATE_RATIO,
        early_ratio: float = EARLY_RATIO,
        late_ratio: float = LATE_RATIO,
        thresholds: TimingThresholds | None = None,
    ) -> None:
        self.bpm = bpm
        self.thresholds = thresholds or TimingThresholds.from_bpm(
            bpm, accurate_ratio, early_ratio, late_ratio
        )
        self._origin: float | None = None
        self._judgments: list[NoteJudgment] = []
        self._cumulative_drift = 0.0
        self._pause_durations: list[float] = []

    @property
    def sequence_origin(self) -> float | None:
        return self._origin

    @property
    def judgments(self) -> list[NoteJudgment]:
        return list(self._judgments)

    def start_session(self, origin: float | None = None) -> None:
        """Clear all state; optionally pin the origin instead of waiting for the first attempt."""
        self.reset()
        if origin is not None:
            self._move_origin(origin, "session start")

    def reset(self) -> None:
        self._origin = None
        self._judgments = []
        self._cumulative_drift = 0.0
        self._pause_durations = []

    # -- clock ---------------------------------------------------------------

    def elapsed(self, now: float) -> float | None:
        if self._origin is None:
            return None
        return now - self._origin

    def drift_at(self, note: ExpectedNote, now: float) -> float | None:
        """Drift ``note`` would have if it were played at ``now``."""
        elapsed = self.elapsed(now)
        if elapsed is None:
            return None
        return elapsed - note.start_time

    def reanchor(self, at_time: float, elapsed: float, reason: str = "recalibration") -> float | None:
        """Move the origin so that ``at_time`` corresponds to ``elapsed`` seconds in."""
        return self._move_origin(at_time - elapsed, reason)

    def _move_origin(self, origin: float, reason: str) -> float | None:
        if not math.isfinite(origin):
            logger.warning("Ignoring non-finite sequence origin (%s)", reason)
            return self._origin
        previous = self._origin
        self._origin = origin
        if previous is None:
            logger.debug("Sequence origin set to %.4f (%s)", origin, reason)
        else:
            logger.debug("Sequence origin moved by %+.4fs (%s)", origin - previous, reason)
        return self._origin

    # -- attempts ------------------------------------------------------------

    def record_attempt(self, expected: ExpectedNote, actual_time: float) -> NoteJudgment:
        """Judge one completed attempt at ``expected`` and append it to the log."""
        if expected.start_time is None:
            raise ValueError(f"Expected note {expected.sequence_index} has no start time")

        if self._origin is None and math.isfinite(actual_time):
            self._move_origin(actual_time, "first attempt")

        drift = math.nan
        if self._origin is not None:
            drift = (actual_time - self._origin) - expected.start_time

        if not math.isfinite(drift):
            logger.warning(
                "Non-finite drift for note %s (time=%r); excluded from statistics",
                expected.sequence_index, actual_time,
            )
            judgment = NoteJudgment(
                expected=expected,
                actual_time=actual_time,
                expected_time=expected.start_time,
                drift=drift,
                raw_drift=drift,
                category=TimingCategory.LATE,
                timing_score=0.0,
            )
        else:
            judgment = self._judge(expected, actual_time, drift)

        self._judgments.append(judgment)
        logger.debug(
            "Note %s: %s (drift %+.1fms, score %.2f)",
            expected.sequence_index, judgment.category.value,
            judgment.raw_drift * 1000.0, judgment.timing_score,
        )
        return judgment

    def _judge(self, expected: ExpectedNote, actual_time: float, drift: float) -> NoteJudgment:
        category = classify_drift(drift, self.thresholds)

        if category is TimingCategory.PAUSE:
            pause = drift - self.thresholds.late
            self._pause_durations.append(pause)
            self._move_origin(self._origin + pause, "pause absorbed")
            adjusted = (actual_time - self._origin) - expected.start_time
            return NoteJudgment(
                expected=expected,
                actual_time=actual_time,
                expected_time=expected.start_time,
                drift=adjusted,
                raw_drift=drift,
                category=category,
                timing_score=0.0,
                pause_duration=pause,
            )

        if category in _ACCEPTED:
            self._cumulative_drift += drift
        return NoteJudgment(
            expected=expected,
            actual_time=actual_time,
            expected_time=expected.start_time,
            drift=drift,
            raw_drift=drift,
            category=category,
            timing_score=timing_score(abs(drift), category),
        )

    # -- aggregates ----------------------------------------------------------

    def _usable_drifts(self, judgments: list[NoteJudgment]) -> list[float]:
        return [
            j.drift for j in judgments
            if j.category is not TimingCategory.PAUSE and math.isfinite(j.drift)
        ]

    def get_timing_metrics(self) -> TimingMetrics:
        """Aggregate the judgment log. Pure: repeated calls give equal results."""
        if not self._judgments:
            return TimingMetrics()

        def count(*categories: TimingCategory) -> int:
            return sum(1 for j in self._judgments if j.category in categories)

        scores = [j.timing_score for j in self._judgments if math.isfinite(j.timing_score)]
        metrics = TimingMetrics(
            total_notes=len(self._judgments),
            accurate_notes=count(TimingCategory.ACCURATE),
            early_notes=count(TimingCategory.EARLY, TimingCategory.TOO_EARLY),
            late_notes=count(TimingCategory.LATE),
            pause_notes=count(TimingCategory.PAUSE),
            timing_accuracy=sum(scores) / len(self._judgments),
            cumulative_drift=self._cumulative_drift,
            pause_metrics=self._pause_metrics(),
            pattern=self.detect_pattern(),
        )

        drifts = self._usable_drifts(self._judgments)
        if not drifts:
            return metrics

        mean = sum(drifts) / len(drifts)
        variance = sum((d - mean) ** 2 for d in drifts) / len(drifts)
        std_dev = math.sqrt(max(0.0, variance))
        early = [d for d in drifts if d < 0]
        late = [d for d in drifts if d > 0]

        metrics.average_drift = mean
        metrics.average_abs_drift = sum(abs(d) for d in drifts) / len(drifts)
        metrics.drift_std_dev = std_dev
        metrics.timing_precision = max(0.0, 1.0 - std_dev / PRECISION_STDDEV_S)
        metrics.max_early_drift = min(early) if early else 0.0
        metrics.max_late_drift = max(late) if late else 0.0
        metrics.max_abs_drift = max(abs(d) for d in drifts)
        return metrics

    def _pause_metrics(self) -> PauseMetrics:
        durations = [p for p in self._pause_durations if math.isfinite(p)]
        if not durations:
            return PauseMetrics()
        total = sum(durations)
        return PauseMetrics(
            pause_count=len(durations),
            total_pause_time=total,
            average_pause_time=total / len(durations),
            min_pause_time=min(durations),
            max_pause_time=max(durations),
        )

    def detect_pattern(self) -> TimingPattern:
        """Look for a systematic tendency in the most recent attempts."""
        drifts = self._usable_drifts(self._judgments[-PATTERN_WINDOW:])
        if len(drifts) < PATTERN_MIN_SAMPLES:
            return TimingPattern(
                "insufficient_data",
                recommendation="Keep practicing to establish timing patterns.",
            )

        mean = sum(drifts) / len(drifts)
        early_share = sum(1 for d in drifts if d < -PATTERN_DRIFT_S) / len(drifts)
        late_share = sum(1 for d in drifts if d > PATTERN_DRIFT_S) / len(drifts)

        if early_share >= PATTERN_SHARE:
            pattern = "consistently_early"
            confidence = min(1.0, abs(mean) / 0.05)
        elif late_share >= PATTERN_SHARE:
            pattern = "consistently_late"
            confidence = min(1.0, abs(mean) / 0.05)
        elif abs(mean) < PATTERN_CENTERED_S and any(abs(d) > PATTERN_SCATTER_S for d in drifts):
            pattern = "inconsistent"
            rms = math.sqrt(sum(d * d for d in drifts) / len(drifts))
            confidence = min(1.0, rms / 0.1)
        else:
            pattern = "balanced"
            confidence = 0.0

        return TimingPattern(
            pattern=pattern,
            confidence=confidence,
            average_drift=mean,
            recommendation=_RECOMMENDATIONS[pattern],
        )

    def get_detailed_analysis(self) -> dict[str, Any]:
        return {
            "judgments": list(self._judgments),
            "metrics": self.get_timing_metrics(),
            "drift_over_time": [
                (i, j.actual_time, j.drift, j.category.value)
                for i, j in enumerate(self._judgments)
            ],
        }
