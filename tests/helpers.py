"""Builders for expected notes and live input events."""

from sightread.models import ExpectedNote, InputKind, LiveInputEvent


def quarter_notes(*pitches, beat=0.5):
    """Expected notes one beat apart; each entry is a pitch or a set of pitches."""
    notes = []
    for i, p in enumerate(pitches):
        group = frozenset(p) if isinstance(p, (set, frozenset, tuple)) else frozenset({p})
        notes.append(ExpectedNote(start_time=i * beat, duration=beat, pitches=group, sequence_index=i))
    return notes


def note_on(pitch, timestamp):
    return LiveInputEvent(pitch=pitch, kind=InputKind.ON, timestamp=timestamp, velocity=80)


def note_off(pitch, timestamp):
    return LiveInputEvent(pitch=pitch, kind=InputKind.OFF, timestamp=timestamp)
