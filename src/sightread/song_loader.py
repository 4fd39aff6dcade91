"""Load MIDI and MusicXML files as fixed practice sequences."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

import mido

from sightread.config import CHORD_GROUPING_S, DEFAULT_BPM
from sightread.models import ConfigurationError, ExpectedNote, Hand

MIDDLE_C = 60


class SongLoadError(Exception):
    """Raised when a song file cannot be parsed."""


@dataclass(frozen=True)
class LoadedSong:
    title: str
    bpm: float
    notes: tuple[ExpectedNote, ...]

    @property
    def duration(self) -> float:
        return self.notes[-1].end_time if self.notes else 0.0


def load_song(file_path: str | Path) -> LoadedSong:
    """Load a MIDI or MusicXML file as a sequence of expected notes.

    Notes whose onsets fall within ``CHORD_GROUPING_S`` of each other are
    merged into one expected event. The first event starts at time zero.

    Args:
        file_path: Path to a .mid, .midi, .xml, .mxl, or .musicxml file.

    Raises:
        SongLoadError: If the file cannot be parsed or holds no notes.
    """
    path = Path(file_path)
    try:
        if path.suffix in (".mid", ".midi"):
            bpm, raw = _read_midi(path)
        elif path.suffix in (".xml", ".mxl", ".musicxml"):
            bpm, raw = _read_musicxml(path)
        else:
            raise SongLoadError(f"Unsupported file format: {path.suffix}")
    except SongLoadError:
        raise
    except Exception as exc:
        raise SongLoadError(f"Failed to load {path.name}: {exc}") from exc

    if not raw:
        raise SongLoadError(f"{path.name} contains no notes")
    return LoadedSong(title=path.stem, bpm=bpm, notes=tuple(group_onsets(raw, bpm)))


def _assign_hand(pitches: frozenset[int]) -> Hand:
    if all(p >= MIDDLE_C for p in pitches):
        return Hand.RIGHT
    if all(p < MIDDLE_C for p in pitches):
        return Hand.LEFT
    return Hand.BOTH


def group_onsets(
    raw: list[tuple[float, float, int]], bpm: float = DEFAULT_BPM
) -> list[ExpectedNote]:
    """Merge ``(start, duration, pitch)`` triples into chord-level expected notes."""
    if not raw:
        return []
    raw = sorted(raw)
    groups: list[list[tuple[float, float, int]]] = []
    for item in raw:
        if groups and item[0] - groups[-1][0][0] <= CHORD_GROUPING_S:
            groups[-1].append(item)
        else:
            groups.append([item])

    offset = groups[0][0][0]
    beat = 60.0 / bpm
    notes: list[ExpectedNote] = []
    for index, group in enumerate(groups):
        start = group[0][0] - offset
        if index + 1 < len(groups):
            duration = groups[index + 1][0][0] - group[0][0]
        else:
            duration = max(d for _s, d, _p in group)
        pitches = frozenset(p for _s, _d, p in group)
        notes.append(ExpectedNote(
            start_time=start,
            duration=duration,
            pitches=pitches,
            hand=_assign_hand(pitches),
            sequence_index=index,
            beats=duration / beat,
        ))
    return notes


def scale_tempo(sequence: list[ExpectedNote] | tuple[ExpectedNote, ...], percent: float) -> list[ExpectedNote]:
    """Stretch (percent < 100) or compress (percent > 100) a fixed sequence."""
    if not percent > 0:
        raise ConfigurationError(f"Tempo percent must be positive, got {percent}")
    factor = 100.0 / percent
    return [
        replace(n, start_time=n.start_time * factor, duration=n.duration * factor)
        for n in sequence
    ]


def _read_midi(path: Path) -> tuple[float, list[tuple[float, float, int]]]:
    mid = mido.MidiFile(str(path))
    first_tempo: int | None = None
    notes: list[tuple[float, float, int]] = []
    pending: dict[tuple[int, int], float] = {}  # (channel, pitch) -> start_time
    abs_time = 0.0

    # Iterating the file merges all tracks and yields deltas in seconds,
    # applying tempo changes from any track (usually the conductor track).
    for msg in mid:
        abs_time += msg.time

        if msg.type == "set_tempo":
            if first_tempo is None:
                first_tempo = msg.tempo

        elif msg.type == "note_on" and msg.velocity > 0:
            key = (msg.channel, msg.note)
            # Close any existing note on the same pitch (overlapping notes)
            if key in pending:
                start = pending.pop(key)
                notes.append((start, max(abs_time - start, 0.01), msg.note))
            pending[key] = abs_time

        elif msg.type in ("note_off", "note_on"):
            key = (msg.channel, msg.note)
            if key in pending:
                start = pending.pop(key)
                notes.append((start, max(abs_time - start, 0.01), msg.note))

    bpm = mido.tempo2bpm(first_tempo) if first_tempo is not None else DEFAULT_BPM
    return bpm, notes


def _read_musicxml(path: Path) -> tuple[float, list[tuple[float, float, int]]]:
    from music21 import converter, tempo as m21tempo

    score = converter.parse(str(path))
    marks = list(score.flatten().getElementsByClass(m21tempo.MetronomeMark))
    bpm = float(marks[0].number) if marks and marks[0].number else DEFAULT_BPM
    seconds_per_quarter = 60.0 / bpm

    notes: list[tuple[float, float, int]] = []
    for part in score.parts:
        for n in part.flatten().notes:
            pitches = n.pitches if hasattr(n, "pitches") else [n.pitch]
            for p in pitches:
                notes.append((
                    float(n.offset) * seconds_per_quarter,
                    float(n.duration.quarterLength) * seconds_per_quarter,
                    p.midi,
                ))
    return bpm, notes
