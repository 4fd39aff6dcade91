"""Metronome — click events at the session tempo, halted while a note is overdue."""

from __future__ import annotations

# GM percussion (channel 10): hi woodblock on the downbeat, side stick otherwise
DOWNBEAT_NOTE = 76
OFFBEAT_NOTE = 37


class Metronome:
    """Turns elapsed wall time into (midi_note, velocity) clicks."""

    def __init__(self, bpm: float = 120.0, beats_per_bar: int = 4) -> None:
        self.bpm = bpm
        self.beats_per_bar = beats_per_bar
        self.running = False
        self._beat_counter = 0
        self._last_time: float | None = None
        self._since_last_beat = 0.0

    @property
    def beat_duration(self) -> float:
        return 60.0 / self.bpm

    @property
    def beats_played(self) -> int:
        return self._beat_counter

    def start(self, now: float) -> list[tuple[int, int]]:
        """Start (or restart) counting from ``now``; the first click sounds immediately."""
        self.running = True
        self._last_time = now
        self._since_last_beat = 0.0
        return [self._click()]

    def stop(self) -> None:
        self.running = False
        self._last_time = None

    def update(self, now: float) -> list[tuple[int, int]]:
        """Advance to ``now`` and return the clicks that fell due since the last call."""
        if not self.running or self._last_time is None:
            return []

        self._since_last_beat += max(0.0, now - self._last_time)
        self._last_time = now
        clicks: list[tuple[int, int]] = []
        while self._since_last_beat >= self.beat_duration:
            self._since_last_beat -= self.beat_duration
            clicks.append(self._click())
        return clicks

    def _click(self) -> tuple[int, int]:
        is_downbeat = (self._beat_counter % self.beats_per_bar) == 0
        self._beat_counter += 1
        if is_downbeat:
            return DOWNBEAT_NOTE, 100
        return OFFBEAT_NOTE, 70

    def reset(self) -> None:
        self.stop()
        self._beat_counter = 0
        self._since_last_beat = 0.0
