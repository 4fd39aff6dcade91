"""Single-threaded dispatch loop that drives a session in real time."""

from __future__ import annotations

import logging
import math
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import replace

from sightread.config import OVERDUE_CHECK_INTERVAL_S
from sightread.metronome import Metronome
from sightread.midi_input import InputSource
from sightread.models import LiveInputEvent, NoteStatus, SessionResult
from sightread.session import (
    Effect,
    Event,
    MetronomeChanged,
    NoteStatusChanged,
    Recalibrated,
    SightReadingSession,
    Tick,
)

logger = logging.getLogger(__name__)


class SessionRunner:
    """Feeds input, ticks and metronome updates into one session, in order.

    Events may be submitted from any thread (an rtmidi callback, a UI loop);
    only ``run`` touches the session. The loop ends when the time limit
    passes, the goal is met, the sequence is finished or ``stop`` is called.
    """

    def __init__(
        self,
        session: SightReadingSession,
        source: InputSource | None = None,
        metronome: Metronome | None = None,
        on_status: Callable[[int, NoteStatus], None] | None = None,
        on_click: Callable[[int, int], None] | None = None,
        latency_offset: float = 0.0,
        time_limit: float | None = None,
        tick_interval: float = OVERDUE_CHECK_INTERVAL_S,
        poll_interval: float = 0.001,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.source = source
        self.metronome = metronome
        self.on_status = on_status
        self.on_click = on_click
        self.latency_offset = latency_offset
        self.time_limit = time_limit
        self.tick_interval = tick_interval
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._queue: queue.Queue[Event] = queue.Queue()
        self._stop = threading.Event()
        self.stop_reason: str | None = None

    def submit(self, event: Event) -> None:
        """Queue an event for the loop. Safe from any thread."""
        self._queue.put(event)

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run(self) -> SessionResult:
        start = self._clock()
        self._apply(self.session.start(start), start)
        deadline = start + self.time_limit if self.time_limit is not None else None
        next_tick = start + self.tick_interval

        try:
            while True:
                if self._stop.is_set():
                    self.stop_reason = "stopped"
                    break
                now = self._clock()
                self._poll_source()
                self._drain()
                if now >= next_tick:
                    self._apply(self.session.dispatch(Tick(now)), now)
                    next_tick = now + self.tick_interval
                if self.metronome is not None:
                    self._click(self.metronome.update(now))

                reason = self._finished_reason(now, deadline)
                if reason is not None:
                    self.stop_reason = reason
                    break
                self._sleep(self.poll_interval)
        finally:
            if self.metronome is not None:
                self.metronome.stop()
            if self.source is not None:
                self.source.close()

        logger.info("Session loop ended (%s)", self.stop_reason)
        return self.session.finish(self._clock())

    def _finished_reason(self, now: float, deadline: float | None) -> str | None:
        if self.session.finished:
            return "sequence complete"
        if self.session.goal_met:
            return "goal met"
        if deadline is not None and now >= deadline:
            return "time limit"
        return None

    def _poll_source(self) -> None:
        if self.source is None:
            return
        while True:
            event = self.source.poll()
            if event is None:
                return
            self._queue.put(event)

    def _drain(self) -> None:
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return
            self._dispatch(event)

    def _dispatch(self, event: Event) -> None:
        if isinstance(event, LiveInputEvent):
            if not math.isfinite(event.timestamp):
                logger.warning("Dropping input event with timestamp %r", event.timestamp)
                return
            if self.latency_offset:
                event = replace(event, timestamp=event.timestamp - self.latency_offset)
        elif not isinstance(event, Tick):
            logger.warning("Dropping unsupported event %r", event)
            return
        self._apply(self.session.dispatch(event), self._clock())

    def _apply(self, effects: list[Effect], now: float) -> None:
        for effect in effects:
            if isinstance(effect, NoteStatusChanged):
                if self.on_status is not None:
                    self.on_status(effect.index, effect.status)
            elif isinstance(effect, MetronomeChanged):
                if self.metronome is None:
                    continue
                if effect.running:
                    self._click(self.metronome.start(now))
                else:
                    self.metronome.stop()
            elif isinstance(effect, Recalibrated):
                logger.debug("Origin now %s via %s", effect.origin, effect.strategy)

    def _click(self, clicks: list[tuple[int, int]]) -> None:
        if self.on_click is None:
            return
        for note, velocity in clicks:
            self.on_click(note, velocity)
