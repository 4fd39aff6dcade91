"""Core data models shared across the engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from enum import Enum, auto
from typing import Any

from sightread.config import (
    DEFAULT_BPM,
    DEFAULT_SESSION_SECONDS,
    OCTAVE_RANGES,
    RHYTHM_PATTERNS,
    SCALES,
)


class ConfigurationError(ValueError):
    """Raised when a session configuration cannot be used to build a sequence."""


def _number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    return float(value)


class Hand(Enum):
    LEFT = auto()  # bass clef
    RIGHT = auto()  # treble clef
    BOTH = auto()


class GroupingMode(Enum):
    SINGLE = "single-notes"
    INTERVAL = "intervals-one-hand"
    CHORD = "chords-one-hand"
    SINGLE_BOTH_HANDS = "single-notes-both-hands"
    INTERVAL_BOTH_HANDS = "intervals-both-hands"
    MULTI_BOTH_HANDS = "multi-notes-both-hands"

    @property
    def both_hands(self) -> bool:
        return self in (
            GroupingMode.SINGLE_BOTH_HANDS,
            GroupingMode.INTERVAL_BOTH_HANDS,
            GroupingMode.MULTI_BOTH_HANDS,
        )


class InputKind(Enum):
    ON = auto()
    OFF = auto()


class TimingCategory(Enum):
    ACCURATE = "accurate"
    EARLY = "early"
    LATE = "late"
    TOO_EARLY = "too_early"
    PAUSE = "pause"


class NoteStatus(Enum):
    COMPLETED = "completed"
    OVERDUE = "overdue"
    WARNING = "warning"
    PAUSED = "paused"


@dataclass(frozen=True)
class ExpectedNote:
    """One scheduled unit of required input."""

    start_time: float  # seconds from sequence origin
    duration: float  # seconds
    pitches: frozenset[int]
    hand: Hand = Hand.RIGHT
    sequence_index: int | None = None
    beats: float = 0.0

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


@dataclass(frozen=True)
class LiveInputEvent:
    pitch: int
    kind: InputKind
    timestamp: float  # seconds, monotonic clock
    velocity: int = 0

    @property
    def is_note_on(self) -> bool:
        return self.kind is InputKind.ON


@dataclass(frozen=True)
class NoteJudgment:
    expected: ExpectedNote
    actual_time: float
    expected_time: float
    drift: float  # negative = early, positive = late
    raw_drift: float  # drift before any origin adjustment
    category: TimingCategory
    timing_score: float
    pause_duration: float = 0.0

    @property
    def absolute_drift(self) -> float:
        return abs(self.drift)

    @property
    def sequence_index(self) -> int | None:
        return self.expected.sequence_index

    @property
    def is_acceptable(self) -> bool:
        """True when the attempt resolves the note (anything but too early)."""
        return self.category is not TimingCategory.TOO_EARLY


@dataclass(frozen=True)
class Goal:
    beats: int = 72
    accuracy: float = 0.9


@dataclass
class SessionConfig:
    """Everything needed to build a sequence and run a session.

    ``rhythm_pattern`` may be the name of a pattern in
    ``config.RHYTHM_PATTERNS`` or an explicit collection of beat durations;
    it is normalised to a tuple of durations on construction.
    """

    scale: str = "C"
    grouping: GroupingMode = GroupingMode.SINGLE
    difficulty: str = "half-octave"
    rhythm_pattern: str | tuple[float, ...] = "quarter-notes"
    bpm: float = DEFAULT_BPM
    goal: Goal | None = None
    fixed_sequence: tuple[ExpectedNote, ...] | None = None
    training_wheels: bool = False
    session_seconds: float = DEFAULT_SESSION_SECONDS

    def __post_init__(self) -> None:
        if not isinstance(self.grouping, GroupingMode):
            try:
                self.grouping = GroupingMode(self.grouping)
            except (ValueError, TypeError):
                raise ConfigurationError(f"Unknown grouping mode: {self.grouping!r}") from None

        if self.fixed_sequence is None:
            if not isinstance(self.scale, str) or self.scale not in SCALES:
                raise ConfigurationError(f"Unknown scale: {self.scale!r}")
            if not isinstance(self.difficulty, str) or self.difficulty not in OCTAVE_RANGES:
                raise ConfigurationError(f"Unknown difficulty: {self.difficulty!r}")
        else:
            self.fixed_sequence = tuple(self.fixed_sequence)

        if isinstance(self.rhythm_pattern, str):
            if self.rhythm_pattern not in RHYTHM_PATTERNS:
                raise ConfigurationError(f"Unknown rhythm pattern: {self.rhythm_pattern!r}")
            self.rhythm_pattern = RHYTHM_PATTERNS[self.rhythm_pattern][0]
        else:
            try:
                durations = list(self.rhythm_pattern)
            except TypeError:
                raise ConfigurationError(f"Unknown rhythm pattern: {self.rhythm_pattern!r}") from None
            self.rhythm_pattern = tuple(_number("Rhythm duration", d) for d in durations)
        if not self.rhythm_pattern:
            raise ConfigurationError("Rhythm pattern is empty")
        if any(not math.isfinite(d) or d <= 0 for d in self.rhythm_pattern):
            raise ConfigurationError(f"Rhythm durations must be positive: {self.rhythm_pattern}")

        if not math.isfinite(_number("BPM", self.bpm)) or self.bpm <= 0:
            raise ConfigurationError(f"BPM must be positive, got {self.bpm}")
        if not _number("Session length", self.session_seconds) > 0:
            raise ConfigurationError(f"Session length must be positive, got {self.session_seconds}")
        if not isinstance(self.training_wheels, bool):
            raise ConfigurationError(f"training_wheels must be true or false, got {self.training_wheels!r}")
        if self.goal is not None:
            if not isinstance(self.goal, Goal):
                raise ConfigurationError(f"Goal must be a Goal, got {self.goal!r}")
            _number("Goal beats", self.goal.beats)
            _number("Goal accuracy", self.goal.accuracy)

    @property
    def beat_duration(self) -> float:
        return 60.0 / self.bpm

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionConfig:
        """Build a config from plain data, rejecting keys it does not know."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        values = dict(data)
        goal = values.get("goal")
        if isinstance(goal, dict):
            try:
                values["goal"] = Goal(**goal)
            except TypeError:
                raise ConfigurationError(f"Unknown goal keys: {', '.join(sorted(goal))}") from None
        return cls(**values)


@dataclass
class PauseMetrics:
    pause_count: int = 0
    total_pause_time: float = 0.0
    average_pause_time: float = 0.0
    min_pause_time: float = 0.0
    max_pause_time: float = 0.0


@dataclass
class TimingPattern:
    pattern: str  # "consistently_early", "consistently_late", "inconsistent", ...
    confidence: float = 0.0
    average_drift: float = 0.0
    recommendation: str = ""


@dataclass
class TimingMetrics:
    total_notes: int = 0
    accurate_notes: int = 0
    early_notes: int = 0
    late_notes: int = 0
    pause_notes: int = 0
    timing_accuracy: float = 0.0
    timing_precision: float = 0.0
    average_drift: float = 0.0
    average_abs_drift: float = 0.0
    max_early_drift: float = 0.0
    max_late_drift: float = 0.0
    max_abs_drift: float = 0.0
    drift_std_dev: float = 0.0
    cumulative_drift: float = 0.0
    pause_metrics: PauseMetrics = field(default_factory=PauseMetrics)
    pattern: TimingPattern = field(default_factory=lambda: TimingPattern("no_data"))


@dataclass
class PerformanceSummary:
    notes_progressed: int = 0
    error_count: int = 0
    total_notes_expected: int = 0
    total_notes_played: int = 0
    sequence_progress: float = 0.0
    time_elapsed: float = 0.0
    note_accuracy: float = 0.0
    performed_bpm: float = 0.0
    consistency_score: float = 0.0
    overall_score: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    average_streak: float = 0.0
    total_streaks: int = 0
    wrong_notes: int = 0
    early_notes: int = 0
    unexpected_notes: int = 0
    notes_reached: int = 0


@dataclass
class MistakePattern:
    kind: str  # "timing", "accuracy"
    description: str
    severity: float  # 0.0 (minor) - 1.0 (critical)


@dataclass
class MistakeAnalysis:
    total_mistakes: int = 0
    mistake_types: dict[str, int] = field(default_factory=dict)
    patterns: list[MistakePattern] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    mistake_rate: float = 0.0
    average_mistakes_per_streak: float = 0.0


@dataclass
class SessionResult:
    """Aggregate produced once, when a session ends."""

    note_accuracy: float
    timing_accuracy: float
    timing_precision: float
    longest_streak: int
    consistency_score: float
    overall_score: float
    grade: str
    performance: PerformanceSummary
    timing: TimingMetrics
    mistakes: MistakeAnalysis
    judgments: tuple[NoteJudgment, ...] = ()
    sequence: tuple[ExpectedNote, ...] = ()
    final_note_index: int = 0
    notes_reached: int = 0
    goal_met: bool | None = None
    # (judgment index, actual time, drift, category value)
    drift_over_time: tuple[tuple[int, float, float, str], ...] = ()

    def summary(self) -> dict[str, Any]:
        """Flat scalar view for display and storage collaborators."""
        return {
            "grade": self.grade,
            "overall_score": round(self.overall_score, 3),
            "note_accuracy": round(self.note_accuracy, 3),
            "timing_accuracy": round(self.timing_accuracy, 3),
            "timing_precision": round(self.timing_precision, 3),
            "consistency_score": round(self.consistency_score, 3),
            "longest_streak": self.longest_streak,
            "notes_reached": self.notes_reached,
            "total_notes": len(self.sequence),
            "errors": self.performance.error_count,
            "pauses": self.timing.pause_metrics.pause_count,
            "performed_bpm": round(self.performance.performed_bpm, 1),
            "timing_pattern": self.timing.pattern.pattern,
            "goal_met": self.goal_met,
        }
