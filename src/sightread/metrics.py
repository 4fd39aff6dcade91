"""Session metrics — streaks, accuracy, composite score, grade and mistake feedback."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from sightread.config import GRADE_LADDER
from sightread.models import (
    ExpectedNote,
    MistakeAnalysis,
    MistakePattern,
    NoteJudgment,
    PerformanceSummary,
)

logger = logging.getLogger(__name__)

CORRECT = "correct"
WRONG_NOTE = "wrong_note"
EARLY_NOTE = "early_note"
UNEXPECTED_NOTE = "unexpected_note"

MISTAKE_KINDS = (WRONG_NOTE, EARLY_NOTE, UNEXPECTED_NOTE)


@dataclass(frozen=True)
class MetricEvent:
    kind: str
    timestamp: float
    sequence_index: int | None = None
    pitch: int | None = None
    drift: float | None = None
    judgment: NoteJudgment | None = None

    @property
    def is_mistake(self) -> bool:
        return self.kind != CORRECT


def calculate_grade(score: float) -> str:
    """Letter grade for an overall score in [0, 1]."""
    for threshold, grade in GRADE_LADDER:
        if score >= threshold:
            return grade
    return "F"


class PerformanceMetrics:
    """Event log and aggregator for one session's note outcomes."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.total_notes_expected = 0
        self.notes_progressed = 0
        self.error_count = 0
        self.notes_reached = 0
        self.sequence_progress = 0.0
        self.time_elapsed = 0.0
        self.session_start: float | None = None
        self.session_end: float | None = None

        self.current_streak = 0
        self.longest_streak = 0
        self.streak_history: list[int] = []

        self.note_events: list[MetricEvent] = []
        self.mistake_events: list[MetricEvent] = []

    def start_session(self, now: float | None = None) -> None:
        self.session_start = time.monotonic() if now is None else now

    def end_session(self, now: float | None = None) -> None:
        self.session_end = time.monotonic() if now is None else now
        if self.session_start is not None:
            self.time_elapsed = max(0.0, self.session_end - self.session_start)
        logger.info(
            "Session ended after %.1fs: %d notes, %d errors, longest streak %d",
            self.time_elapsed, self.notes_progressed, self.error_count, self.longest_streak,
        )

    def set_total_expected_notes(self, count: int) -> None:
        self.total_notes_expected = count

    def update_progress(self, current_index: int, total: int) -> None:
        self.sequence_progress = current_index / total if total > 0 else 0.0

    # -- recording -----------------------------------------------------------

    def record_correct_note(
        self, expected: ExpectedNote, actual_time: float, judgment: NoteJudgment | None = None
    ) -> None:
        self.notes_progressed += 1
        self.current_streak += 1
        self.longest_streak = max(self.longest_streak, self.current_streak)
        if expected.sequence_index is not None:
            self.notes_reached = max(self.notes_reached, expected.sequence_index + 1)
        self.note_events.append(
            MetricEvent(CORRECT, actual_time, expected.sequence_index, judgment=judgment)
        )

    def record_wrong_note(self, expected: ExpectedNote, pitch: int, actual_time: float) -> None:
        self._record_mistake(MetricEvent(WRONG_NOTE, actual_time, expected.sequence_index, pitch=pitch))

    def record_early_note(self, expected: ExpectedNote, actual_time: float, drift: float) -> None:
        """A complete but too-early attempt; the note has to be played again."""
        self._record_mistake(MetricEvent(EARLY_NOTE, actual_time, expected.sequence_index, drift=drift))

    def record_unexpected_note(self, pitch: int, actual_time: float) -> None:
        self._record_mistake(MetricEvent(UNEXPECTED_NOTE, actual_time, pitch=pitch))

    def _record_mistake(self, event: MetricEvent) -> None:
        self.error_count += 1
        self.break_streak()
        self.mistake_events.append(event)
        logger.debug("Mistake: %s at note %s", event.kind, event.sequence_index)

    def break_streak(self) -> None:
        if self.current_streak > 0:
            self.streak_history.append(self.current_streak)
            self.current_streak = 0

    # -- aggregates ----------------------------------------------------------

    def _count(self, kind: str) -> int:
        return sum(1 for e in self.mistake_events if e.kind == kind)

    def get_performance_metrics(self) -> PerformanceSummary:
        total_played = self.notes_progressed + self.error_count
        note_accuracy = self.notes_progressed / total_played if total_played > 0 else 0.0
        performed_bpm = (
            self.notes_progressed / self.time_elapsed * 60.0 if self.time_elapsed > 0 else 0.0
        )

        if self.streak_history:
            average_streak = sum(self.streak_history) / len(self.streak_history)
        else:
            average_streak = float(self.current_streak)
        consistency = 0.0
        if self.notes_progressed > 0:
            consistency = min(1.0, average_streak / max(10.0, self.notes_progressed * 0.5))

        overall = note_accuracy * 0.4 + consistency * 0.3 + min(1.0, performed_bpm / 60.0) * 0.3

        return PerformanceSummary(
            notes_progressed=self.notes_progressed,
            error_count=self.error_count,
            total_notes_expected=self.total_notes_expected,
            total_notes_played=total_played,
            sequence_progress=self.sequence_progress,
            time_elapsed=self.time_elapsed,
            note_accuracy=note_accuracy,
            performed_bpm=performed_bpm,
            consistency_score=consistency,
            overall_score=overall,
            current_streak=self.current_streak,
            longest_streak=self.longest_streak,
            average_streak=average_streak,
            total_streaks=len(self.streak_history) + (1 if self.current_streak > 0 else 0),
            wrong_notes=self._count(WRONG_NOTE),
            early_notes=self._count(EARLY_NOTE),
            unexpected_notes=self._count(UNEXPECTED_NOTE),
            notes_reached=self.notes_reached,
        )

    def get_mistake_analysis(self) -> MistakeAnalysis:
        total = len(self.mistake_events)
        if total == 0:
            return MistakeAnalysis(
                mistake_types={kind: 0 for kind in MISTAKE_KINDS},
                recommendations=["Excellent performance! No mistakes detected."],
            )

        mistake_types = {kind: self._count(kind) for kind in MISTAKE_KINDS}
        patterns = self._mistake_patterns(mistake_types)
        return MistakeAnalysis(
            total_mistakes=total,
            mistake_types=mistake_types,
            patterns=patterns,
            recommendations=self._recommendations(mistake_types),
            mistake_rate=total / max(1, self.notes_progressed + total),
            average_mistakes_per_streak=(
                total / len(self.streak_history) if self.streak_history else float(total)
            ),
        )

    def _mistake_patterns(self, mistake_types: dict[str, int]) -> list[MistakePattern]:
        patterns: list[MistakePattern] = []
        early = mistake_types[EARLY_NOTE]
        if early > 3:
            patterns.append(MistakePattern("timing", "Tendency to rush ahead", min(1.0, early / 10)))
        wrong = mistake_types[WRONG_NOTE]
        if wrong > 3:
            patterns.append(MistakePattern("accuracy", "Note reading challenges", min(1.0, wrong / 10)))
        return patterns

    def _recommendations(self, mistake_types: dict[str, int]) -> list[str]:
        recommendations: list[str] = []
        if mistake_types[WRONG_NOTE] > mistake_types[EARLY_NOTE]:
            recommendations.append(
                "Focus on note accuracy. Practice slowly with careful attention to pitch."
            )
        if mistake_types[EARLY_NOTE] > 3:
            recommendations.append("Work on timing patience. Try practicing with a metronome.")
        if mistake_types[UNEXPECTED_NOTE] > 3:
            recommendations.append("Keep your hands still between notes; extra notes count as mistakes.")
        if self.longest_streak < 5 and self.notes_progressed > 10:
            recommendations.append(
                "Focus on consistency. Break down difficult sections and practice slowly."
            )
        if self.current_streak > 20:
            recommendations.append("Great consistency! Try increasing the difficulty or tempo.")
        if not recommendations:
            recommendations.append("Good performance! Continue practicing to build speed and accuracy.")
        return recommendations

    def get_detailed_event_log(self) -> list[MetricEvent]:
        return sorted(self.note_events + self.mistake_events, key=lambda e: e.timestamp)
