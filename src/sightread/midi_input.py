"""Real-time note input from MIDI keyboards or the computer keyboard."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import pygame

from sightread.models import InputKind, LiveInputEvent

try:
    import rtmidi
    _HAS_RTMIDI = True
except ImportError:
    _HAS_RTMIDI = False

logger = logging.getLogger(__name__)

# GM percussion channel (10), zero-based in status bytes
_PERCUSSION_NOTE_ON = 0x99
_PERCUSSION_NOTE_OFF = 0x89


class MidiDeviceError(Exception):
    """Raised when no MIDI device is found or connection fails."""


@runtime_checkable
class InputSource(Protocol):
    """Common interface for MIDI and keyboard input sources."""
    def poll(self) -> LiveInputEvent | None: ...
    def close(self) -> None: ...


# Computer keyboard -> MIDI pitch mapping
_LOWER_ROW = {
    pygame.K_z: 60, pygame.K_x: 62, pygame.K_c: 64, pygame.K_v: 65,
    pygame.K_b: 67, pygame.K_n: 69, pygame.K_m: 71, pygame.K_COMMA: 72,
    pygame.K_PERIOD: 74, pygame.K_SLASH: 76,
}
_MIDDLE_ROW = {
    pygame.K_s: 61, pygame.K_d: 63, pygame.K_g: 66, pygame.K_h: 68,
    pygame.K_j: 70, pygame.K_l: 73, pygame.K_SEMICOLON: 75,
}
_UPPER_ROW = {
    pygame.K_q: 48, pygame.K_w: 50, pygame.K_e: 52, pygame.K_r: 53,
    pygame.K_t: 55, pygame.K_y: 57, pygame.K_u: 59,
}
_KEY_TO_PITCH: dict[int, int] = {**_LOWER_ROW, **_MIDDLE_ROW, **_UPPER_ROW}
KEYBOARD_LAYOUT = "Z../ = C4..E5, Q..U = C3..B3"


class KeyboardInput:
    """Fallback input using the computer keyboard mapped to piano notes.

    The bottom row plays C4-E5 (white keys), the home row the black keys
    between them, and the top row C3-B3 for bass-clef practice.
    """

    def __init__(
        self,
        velocity: int = 80,
        clock: Callable[[], float] = time.monotonic,
        on_quit: Callable[[], None] | None = None,
    ) -> None:
        self._velocity = velocity
        self._clock = clock
        self.on_quit = on_quit
        self._events: list[LiveInputEvent] = []
        self._held: set[int] = set()

    def feed_event(self, event: pygame.event.Event) -> None:
        """Translate one pygame event; call for each event from the window loop."""
        if event.type == pygame.QUIT:
            if self.on_quit is not None:
                self.on_quit()
        elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
            if self.on_quit is not None:
                self.on_quit()
        elif event.type == pygame.KEYDOWN and event.key in _KEY_TO_PITCH:
            pitch = _KEY_TO_PITCH[event.key]
            if pitch not in self._held:
                self._held.add(pitch)
                self._events.append(LiveInputEvent(
                    pitch=pitch, kind=InputKind.ON,
                    timestamp=self._clock(), velocity=self._velocity,
                ))
        elif event.type == pygame.KEYUP and event.key in _KEY_TO_PITCH:
            pitch = _KEY_TO_PITCH[event.key]
            self._held.discard(pitch)
            self._events.append(LiveInputEvent(
                pitch=pitch, kind=InputKind.OFF, timestamp=self._clock(),
            ))

    def poll(self) -> LiveInputEvent | None:
        # Pump the window's queue when one is open; otherwise rely on feed_event.
        if pygame.display.get_init() and pygame.display.get_surface() is not None:
            for event in pygame.event.get():
                self.feed_event(event)
        if self._events:
            return self._events.pop(0)
        return None

    def close(self) -> None:
        self._events.clear()
        self._held.clear()


def decode_message(data: list[int], timestamp: float) -> LiveInputEvent | None:
    """Note-on/note-off from a raw MIDI message; anything else gives None."""
    if len(data) < 3:
        return None
    status = data[0] & 0xF0
    if status == 0x90 and data[2] > 0:
        return LiveInputEvent(pitch=data[1], kind=InputKind.ON, timestamp=timestamp, velocity=data[2])
    elif status == 0x80 or (status == 0x90 and data[2] == 0):
        return LiveInputEvent(pitch=data[1], kind=InputKind.OFF, timestamp=timestamp)
    return None


class MidiInput:
    def __init__(self, port_index: int | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        if not _HAS_RTMIDI:
            raise MidiDeviceError("python-rtmidi is not installed")
        self.midi_in = rtmidi.MidiIn()
        self._port_index = port_index
        self._clock = clock
        self._open = False

    @staticmethod
    def list_ports() -> list[str]:
        if not _HAS_RTMIDI:
            return []
        midi_in = rtmidi.MidiIn()
        return midi_in.get_ports()

    def open(self) -> None:
        ports = self.midi_in.get_ports()
        if not ports:
            raise MidiDeviceError("No MIDI input devices found")
        idx = self._port_index if self._port_index is not None else 0
        if not 0 <= idx < len(ports):
            raise MidiDeviceError(f"MIDI input port {idx} does not exist ({len(ports)} available)")
        self.midi_in.open_port(idx)
        self._open = True
        logger.info("Opened MIDI input %d: %s", idx, ports[idx])

    def poll(self) -> LiveInputEvent | None:
        """Non-blocking poll for the next note message. Returns None if there is none."""
        if not self._open:
            return None
        while True:
            msg = self.midi_in.get_message()
            if msg is None:
                return None
            event = decode_message(msg[0], self._clock())
            if event is not None:
                return event

    def close(self) -> None:
        if self._open:
            self.midi_in.close_port()
            self._open = False


class MidiClickOutput:
    """Sends metronome clicks to a MIDI output port on the percussion channel."""

    def __init__(self, port_index: int = 0) -> None:
        if not _HAS_RTMIDI:
            raise MidiDeviceError("python-rtmidi is not installed")
        self.midi_out = rtmidi.MidiOut()
        ports = self.midi_out.get_ports()
        if not 0 <= port_index < len(ports):
            raise MidiDeviceError(f"MIDI output port {port_index} does not exist ({len(ports)} available)")
        self.midi_out.open_port(port_index)
        logger.info("Metronome clicks on MIDI output %d: %s", port_index, ports[port_index])

    def send_click(self, note: int, velocity: int) -> None:
        self.midi_out.send_message([_PERCUSSION_NOTE_ON, note, velocity])
        self.midi_out.send_message([_PERCUSSION_NOTE_OFF, note, 0])

    def close(self) -> None:
        self.midi_out.close_port()
