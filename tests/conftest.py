"""Shared fixtures."""

import mido
import pytest


@pytest.fixture
def midi_file(tmp_path):
    """C4+E4 chord, then G4, then C3; one beat each at 120 BPM."""
    mid = mido.MidiFile(ticks_per_beat=480)
    track = mido.MidiTrack()
    mid.tracks.append(track)
    track.append(mido.MetaMessage("set_tempo", tempo=500_000, time=0))
    track.append(mido.Message("note_on", note=60, velocity=80, time=0))
    track.append(mido.Message("note_on", note=64, velocity=80, time=0))
    track.append(mido.Message("note_off", note=60, velocity=0, time=480))
    track.append(mido.Message("note_off", note=64, velocity=0, time=0))
    track.append(mido.Message("note_on", note=67, velocity=80, time=0))
    track.append(mido.Message("note_on", note=67, velocity=0, time=480))
    track.append(mido.Message("note_on", note=48, velocity=80, time=0))
    track.append(mido.Message("note_off", note=48, velocity=0, time=480))
    path = tmp_path / "exercise.mid"
    mid.save(str(path))
    return path
