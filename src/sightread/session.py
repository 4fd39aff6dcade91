"""Sight-reading session state machine.

The session consumes live note events and periodic ticks, one at a time,
through ``SightReadingSession.dispatch``. Each call returns the effects the
surrounding loop should apply (status notifications for the renderer,
metronome start/stop, recalibration notices). States:

* ``PLAYING``: normal advancement; ticks check whether the current note
  has gone overdue.
* ``PAUSED_FOR_NOTE``: the current note went overdue; the sequence waits
  for it to be played.
* ``RESUMING``: entered right after a recalibrating correction; blocks a
  second timeline edit until the next tick returns the session to
  ``PLAYING``.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, auto
from typing import Union

from sightread.config import RECALIBRATION_SANITY_BOUND_S, TIMER_EPSILON_S
from sightread.evaluator import TimingAnalyzer
from sightread.generator import SequenceGenerator
from sightread.metrics import PerformanceMetrics, calculate_grade
from sightread.models import (
    ExpectedNote,
    Goal,
    LiveInputEvent,
    NoteJudgment,
    NoteStatus,
    SessionConfig,
    SessionResult,
    TimingCategory,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    PLAYING = auto()
    PAUSED_FOR_NOTE = auto()
    RESUMING = auto()


TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.PLAYING: frozenset(
        {SessionState.PLAYING, SessionState.PAUSED_FOR_NOTE, SessionState.RESUMING}
    ),
    SessionState.PAUSED_FOR_NOTE: frozenset(
        {SessionState.PAUSED_FOR_NOTE, SessionState.PLAYING, SessionState.RESUMING}
    ),
    SessionState.RESUMING: frozenset({SessionState.RESUMING, SessionState.PLAYING}),
}


class SessionStateError(RuntimeError):
    """Raised on a state transition the session does not allow."""


@dataclass(frozen=True)
class Tick:
    """Periodic timer event used for overdue checks."""

    timestamp: float


@dataclass(frozen=True)
class NoteStatusChanged:
    index: int
    status: NoteStatus


@dataclass(frozen=True)
class MetronomeChanged:
    running: bool


@dataclass(frozen=True)
class Recalibrated:
    origin: float | None
    strategy: str  # "rewind" or "new_baseline"
    drift: float


Event = Union[Tick, LiveInputEvent]
Effect = Union[NoteStatusChanged, MetronomeChanged, Recalibrated]


class SightReadingSession:
    """Matches live input against the expected sequence and drives the timing judge."""

    def __init__(
        self,
        sequence: Sequence[ExpectedNote],
        analyzer: TimingAnalyzer,
        metrics: PerformanceMetrics | None = None,
        training_wheels: bool = False,
        recalibration_tolerance: float | None = None,
        sanity_bound: float = RECALIBRATION_SANITY_BOUND_S,
        goal: Goal | None = None,
    ) -> None:
        # The generated timing is kept untouched; recalibration always reads from it.
        self._sequence: tuple[ExpectedNote, ...] = tuple(sequence)
        self.analyzer = analyzer
        self.metrics = metrics or PerformanceMetrics()
        self.training_wheels = training_wheels
        self.tolerance = (
            analyzer.thresholds.accurate if recalibration_tolerance is None else recalibration_tolerance
        )
        self.sanity_bound = sanity_bound
        self.goal = goal

        self._state = SessionState.PLAYING
        self._index = 0
        self._pressed: set[int] = set()
        self._awaiting_replay: ExpectedNote | None = None
        self._warned: set[int] = set()
        self._overdue: set[int] = set()

    @classmethod
    def from_config(
        cls, config: SessionConfig, rng: random.Random | None = None, **kwargs
    ) -> SightReadingSession:
        """Generate a sequence for ``config`` and wire up a fresh analyzer and metrics."""
        sequence = SequenceGenerator(config, rng).generate(config.session_seconds)
        return cls(
            sequence,
            TimingAnalyzer(config.bpm),
            PerformanceMetrics(),
            training_wheels=config.training_wheels,
            goal=config.goal,
            **kwargs,
        )

    # -- read-only views -----------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def sequence(self) -> tuple[ExpectedNote, ...]:
        return self._sequence

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_note(self) -> ExpectedNote | None:
        if self._index < len(self._sequence):
            return self._sequence[self._index]
        return None

    @property
    def pressed(self) -> frozenset[int]:
        return frozenset(self._pressed)

    @property
    def awaiting_replay(self) -> ExpectedNote | None:
        return self._awaiting_replay

    @property
    def finished(self) -> bool:
        return self._index >= len(self._sequence)

    @property
    def notes_reached(self) -> int:
        return self.metrics.notes_reached

    @property
    def goal_met(self) -> bool | None:
        if self.goal is None:
            return None
        summary = self.metrics.get_performance_metrics()
        return summary.notes_reached >= self.goal.beats and summary.note_accuracy >= self.goal.accuracy

    # -- lifecycle -----------------------------------------------------------

    def start(self, now: float | None = None) -> list[Effect]:
        self.analyzer.start_session()
        self.metrics.reset()
        self.metrics.start_session(now)
        self.metrics.set_total_expected_notes(len(self._sequence))
        self._state = SessionState.PLAYING
        self._index = 0
        self._pressed.clear()
        self._awaiting_replay = None
        self._warned.clear()
        self._overdue.clear()
        logger.info(
            "Session started: %d notes, %.0f BPM, training wheels %s",
            len(self._sequence), self.analyzer.bpm, "on" if self.training_wheels else "off",
        )
        return [MetronomeChanged(True)]

    def finish(self, now: float | None = None) -> SessionResult:
        """Close the session and build its result."""
        self.metrics.end_session(now)
        performance = self.metrics.get_performance_metrics()
        analysis = self.analyzer.get_detailed_analysis()
        timing = analysis["metrics"]
        return SessionResult(
            note_accuracy=performance.note_accuracy,
            timing_accuracy=timing.timing_accuracy,
            timing_precision=timing.timing_precision,
            longest_streak=performance.longest_streak,
            consistency_score=performance.consistency_score,
            overall_score=performance.overall_score,
            grade=calculate_grade(performance.overall_score),
            performance=performance,
            timing=timing,
            mistakes=self.metrics.get_mistake_analysis(),
            judgments=tuple(analysis["judgments"]),
            drift_over_time=tuple(analysis["drift_over_time"]),
            sequence=self._sequence,
            final_note_index=self._index,
            notes_reached=performance.notes_reached,
            goal_met=self.goal_met,
        )

    # -- dispatch ------------------------------------------------------------

    def dispatch(self, event: Event) -> list[Effect]:
        """Apply one event and return the resulting effects."""
        if isinstance(event, Tick):
            return self._on_tick(event.timestamp)
        if isinstance(event, LiveInputEvent):
            if event.is_note_on:
                return self._on_note_on(event.pitch, event.timestamp)
            self._pressed.discard(event.pitch)
            return []
        raise TypeError(f"Unsupported session event: {event!r}")

    def _enter(self, state: SessionState) -> None:
        if state not in TRANSITIONS[self._state]:
            raise SessionStateError(f"{self._state.name} -> {state.name} is not allowed")
        if state is not self._state:
            logger.debug("State %s -> %s", self._state.name, state.name)
        self._state = state

    def _on_tick(self, now: float) -> list[Effect]:
        if self._state is SessionState.RESUMING:
            self._enter(SessionState.PLAYING)
            return []
        if self._state is not SessionState.PLAYING:
            return []

        note = self.current_note
        if note is None:
            return []
        drift = self.analyzer.drift_at(note, now)
        if drift is None or not math.isfinite(drift):
            return []

        thresholds = self.analyzer.thresholds
        if drift > thresholds.late + TIMER_EPSILON_S:
            self._overdue.add(self._index)
            self._enter(SessionState.PAUSED_FOR_NOTE)
            logger.debug("Note %d overdue (%.0fms late)", self._index, drift * 1000.0)
            return [NoteStatusChanged(self._index, NoteStatus.OVERDUE), MetronomeChanged(False)]
        if drift > thresholds.accurate and self._index not in self._warned:
            self._warned.add(self._index)
            return [NoteStatusChanged(self._index, NoteStatus.WARNING)]
        return []

    def _on_note_on(self, pitch: int, now: float) -> list[Effect]:
        note = self.current_note
        if note is None:
            self.metrics.record_unexpected_note(pitch, now)
            return []

        self._pressed.add(pitch)
        if pitch not in note.pitches:
            self.metrics.record_wrong_note(note, pitch, now)
            return []
        if not note.pitches <= self._pressed:
            return []

        judgment = self.analyzer.record_attempt(note, now)
        if judgment.category is TimingCategory.TOO_EARLY:
            self.metrics.record_early_note(note, now, judgment.drift)
            self._awaiting_replay = note
            self._pressed.clear()
            return []

        self.metrics.record_correct_note(note, now, judgment)
        return self._resolve(judgment)

    def _resolve(self, judgment: NoteJudgment) -> list[Effect]:
        """Advance past a resolved note, recalibrating the timeline if needed."""
        index = self._index
        was_paused = self._state is SessionState.PAUSED_FOR_NOTE
        status = NoteStatus.PAUSED if judgment.category is TimingCategory.PAUSE else NoteStatus.COMPLETED
        effects: list[Effect] = [NoteStatusChanged(index, status)]

        self._pressed.clear()
        self._awaiting_replay = None
        self._index += 1
        self.metrics.update_progress(self._index, len(self._sequence))

        if was_paused:
            effects.append(MetronomeChanged(True))

        if self._needs_recalibration(judgment):
            effects.append(self._recalibrate(index, judgment))
            self._enter(SessionState.RESUMING)
        else:
            self._enter(SessionState.PLAYING)
        return effects

    def _needs_recalibration(self, judgment: NoteJudgment) -> bool:
        if not self.training_wheels or self._state is SessionState.RESUMING:
            return False
        if self.finished or not math.isfinite(judgment.raw_drift):
            return False
        return abs(judgment.raw_drift) > self.tolerance + TIMER_EPSILON_S

    def _recalibrate(self, index: int, judgment: NoteJudgment) -> Recalibrated:
        """Re-anchor the origin from the generated timing of the resolved note.

        Within the sanity bound the resolved note is pulled back to the edge of
        the tolerance band, or to the late threshold when it was a pause. The
        analyzer has already moved the origin by the pause, so a pause leaves
        it where it is. Beyond the bound, a fresh baseline is taken: the resolved
        attempt counts as on time, so the next note falls due one scheduled
        gap after it.
        """
        current = self._sequence[index]
        drift = judgment.raw_drift
        at_time = judgment.actual_time

        if abs(drift) <= self.sanity_bound:
            strategy = "rewind"
            if judgment.category is TimingCategory.PAUSE:
                edge = self.analyzer.thresholds.late
            else:
                edge = self.tolerance
            elapsed = current.start_time + math.copysign(edge, drift)
        else:
            strategy = "new_baseline"
            elapsed = current.start_time

        origin = self.analyzer.reanchor(at_time, elapsed, f"training wheels {strategy}")
        logger.info(
            "Recalibrated after note %d (%+.0fms, %s)", index, drift * 1000.0, strategy
        )
        return Recalibrated(origin=origin, strategy=strategy, drift=drift)
