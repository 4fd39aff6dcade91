"""Tests for input sources."""

import pygame

from sightread.midi_input import KEYBOARD_LAYOUT, InputSource, KeyboardInput, decode_message
from sightread.models import InputKind


def _key(event_type, key):
    return pygame.event.Event(event_type, key=key)


def test_keyboard_note_on_and_off():
    keyboard = KeyboardInput(clock=lambda: 5.0)
    keyboard.feed_event(_key(pygame.KEYDOWN, pygame.K_z))
    keyboard.feed_event(_key(pygame.KEYUP, pygame.K_z))

    on = keyboard.poll()
    off = keyboard.poll()
    assert (on.pitch, on.kind, on.timestamp, on.velocity) == (60, InputKind.ON, 5.0, 80)
    assert (off.pitch, off.kind) == (60, InputKind.OFF)
    assert keyboard.poll() is None


def test_keyboard_ignores_autorepeat_and_unmapped_keys():
    keyboard = KeyboardInput()
    keyboard.feed_event(_key(pygame.KEYDOWN, pygame.K_x))
    keyboard.feed_event(_key(pygame.KEYDOWN, pygame.K_x))
    keyboard.feed_event(_key(pygame.KEYDOWN, pygame.K_F1))
    assert keyboard.poll().pitch == 62
    assert keyboard.poll() is None


def test_keyboard_bass_row():
    keyboard = KeyboardInput()
    keyboard.feed_event(_key(pygame.KEYDOWN, pygame.K_q))
    assert keyboard.poll().pitch == 48


def test_keyboard_layout_edges():
    assert KEYBOARD_LAYOUT == "Z../ = C4..E5, Q..U = C3..B3"
    keyboard = KeyboardInput()
    for key in (pygame.K_z, pygame.K_SLASH, pygame.K_q, pygame.K_u):
        keyboard.feed_event(_key(pygame.KEYDOWN, key))
    assert [keyboard.poll().pitch for _ in range(4)] == [60, 76, 48, 59]


def test_keyboard_quit():
    stopped = []
    keyboard = KeyboardInput(on_quit=lambda: stopped.append(True))
    keyboard.feed_event(pygame.event.Event(pygame.QUIT))
    keyboard.feed_event(_key(pygame.KEYDOWN, pygame.K_ESCAPE))
    assert stopped == [True, True]


def test_keyboard_is_input_source():
    assert isinstance(KeyboardInput(), InputSource)


def test_decode_note_messages():
    on = decode_message([0x90, 60, 100], 1.5)
    assert (on.pitch, on.kind, on.velocity, on.timestamp) == (60, InputKind.ON, 100, 1.5)
    assert decode_message([0x91, 62, 0], 1.5).kind is InputKind.OFF
    assert decode_message([0x80, 62, 64], 1.5).kind is InputKind.OFF


def test_decode_ignores_other_messages():
    assert decode_message([0xB0, 64, 127], 0.0) is None  # sustain pedal
    assert decode_message([0xF8], 0.0) is None  # clock
