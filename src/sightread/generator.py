"""Sequence generation — random sight-reading material from a scale, rhythm and tempo."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import replace

from sightread.config import (
    MIDI_NOTE_MAX,
    MIDI_NOTE_MIN,
    OCTAVE_RANGES,
    PITCH_CLASSES,
    SCALES,
)
from sightread.models import ExpectedNote, GroupingMode, Hand, SessionConfig

logger = logging.getLogger(__name__)


def scale_pitch(scale: Sequence[str], degree: int, octave: int) -> int:
    """MIDI pitch of a scale degree, counted upward from the tonic in ``octave``.

    Degrees past the end of the scale wrap into the next octave, and pitch
    classes below the tonic's are placed above it, so higher degrees always
    give higher pitches.
    """
    octave += degree // len(scale)
    name = scale[degree % len(scale)]
    tonic = PITCH_CLASSES[scale[0]]
    offset = (PITCH_CLASSES[name] - tonic) % 12
    return (octave + 1) * 12 + tonic + offset


def _fit_range(pitches: list[int]) -> list[int]:
    """Transpose a group by octaves until it sits on the piano keyboard."""
    while max(pitches) > MIDI_NOTE_MAX and min(pitches) - 12 >= MIDI_NOTE_MIN:
        pitches = [p - 12 for p in pitches]
    while min(pitches) < MIDI_NOTE_MIN and max(pitches) + 12 <= MIDI_NOTE_MAX:
        pitches = [p + 12 for p in pitches]
    return pitches


def sequence_duration(sequence: Sequence[ExpectedNote]) -> float:
    """Total length of a sequence in seconds (end of its last event)."""
    if not sequence:
        return 0.0
    return sequence[-1].end_time


class SequenceGenerator:
    """Builds the list of expected note events for one session."""

    def __init__(self, config: SessionConfig, rng: random.Random | None = None) -> None:
        self.config = config
        self._rng = rng or random.Random()
        self._durations: tuple[float, ...] = tuple(config.rhythm_pattern)
        if config.fixed_sequence is None:
            self._scale = SCALES[config.scale]
            self._right_octaves, self._left_octaves = OCTAVE_RANGES[config.difficulty]

    def generate(self, target_seconds: float | None = None) -> list[ExpectedNote]:
        """Generate a sequence lasting approximately ``target_seconds``.

        A fixed sequence from the config is returned as-is, apart from
        giving unindexed events their position as ``sequence_index``.
        """
        if self.config.fixed_sequence is not None:
            return [
                note if note.sequence_index is not None else replace(note, sequence_index=i)
                for i, note in enumerate(self.config.fixed_sequence)
            ]

        if target_seconds is None:
            target_seconds = self.config.session_seconds
        beats_per_second = self.config.bpm / 60.0
        target_beats = target_seconds * beats_per_second

        sequence: list[ExpectedNote] = []
        beat = 0.0
        index = 0
        while beat < target_beats:
            duration = self._rng.choice(self._durations)
            pitches, hand = self._draw(index)
            sequence.append(
                ExpectedNote(
                    start_time=beat / beats_per_second,
                    duration=duration / beats_per_second,
                    pitches=frozenset(pitches),
                    hand=hand,
                    sequence_index=index,
                    beats=duration,
                )
            )
            beat += duration
            index += 1

        logger.debug(
            "Generated %d events (%.1f beats at %.0f BPM, %s)",
            len(sequence), beat, self.config.bpm, self.config.grouping.value,
        )
        return sequence

    # -- pitch content -------------------------------------------------------

    def _draw(self, index: int) -> tuple[list[int], Hand]:
        mode = self.config.grouping
        if mode is GroupingMode.SINGLE:
            hand = self._pick_hand(index)
            return self._single(hand), hand
        if mode is GroupingMode.INTERVAL:
            hand = self._pick_hand(index)
            return self._interval(hand), hand
        if mode is GroupingMode.CHORD:
            hand = self._pick_hand(index)
            return self._chord(hand), hand
        if mode is GroupingMode.SINGLE_BOTH_HANDS:
            return self._single(Hand.RIGHT) + self._single(Hand.LEFT), Hand.BOTH
        if mode is GroupingMode.INTERVAL_BOTH_HANDS:
            return self._interval(Hand.RIGHT) + self._interval(Hand.LEFT), Hand.BOTH
        if mode is GroupingMode.MULTI_BOTH_HANDS:
            pitches: list[int] = []
            for hand in (Hand.RIGHT, Hand.LEFT):
                for _ in range(self._rng.randint(1, 2)):
                    pitches += self._single(hand)
            return pitches, Hand.BOTH
        raise AssertionError(f"unhandled grouping mode {mode}")

    def _pick_hand(self, index: int) -> Hand:
        """Bass notes come less often, and more likely on strong beats."""
        bass_chance = 0.4 if index % 4 == 0 else 0.1
        if self._rng.random() < bass_chance:
            return Hand.LEFT
        return Hand.LEFT if self._rng.random() > 0.7 else Hand.RIGHT

    def _octave(self, hand: Hand) -> int:
        octaves = self._left_octaves if hand is Hand.LEFT else self._right_octaves
        return self._rng.choice(octaves)

    def _single(self, hand: Hand) -> list[int]:
        degree = self._rng.randrange(len(self._scale))
        return _fit_range([scale_pitch(self._scale, degree, self._octave(hand))])

    def _interval(self, hand: Hand) -> list[int]:
        octave = self._octave(hand)
        root = self._rng.randrange(len(self._scale))
        offset = self._rng.randint(1, len(self._scale))  # second up to octave
        return _fit_range([
            scale_pitch(self._scale, root, octave),
            scale_pitch(self._scale, root + offset, octave),
        ])

    def _chord(self, hand: Hand) -> list[int]:
        octave = self._octave(hand)
        root = self._rng.randrange(len(self._scale))
        voices = self._rng.choice((3, 4))  # triad or seventh
        return _fit_range([scale_pitch(self._scale, root + 2 * k, octave) for k in range(voices)])
