"""Entry point for `python -m sightread` or the `sightread` console script."""

from __future__ import annotations

import argparse
import logging
import random
import sys
from dataclasses import replace

from sightread.config import OCTAVE_RANGES, RHYTHM_PATTERNS, SCALES
from sightread.metronome import Metronome
from sightread.midi_input import (
    KEYBOARD_LAYOUT,
    InputSource,
    KeyboardInput,
    MidiClickOutput,
    MidiDeviceError,
    MidiInput,
)
from sightread.models import ConfigurationError, GroupingMode, NoteStatus, SessionResult
from sightread.runner import SessionRunner
from sightread.session import SightReadingSession
from sightread.settings import PracticeSettings, load_settings
from sightread.song_loader import SongLoadError, load_song, scale_tempo


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="sightread — real-time sight-reading practice")
    parser.add_argument("--scale", choices=sorted(SCALES), help="Key of the generated material")
    parser.add_argument("--grouping", choices=[m.value for m in GroupingMode], help="Note grouping mode")
    parser.add_argument("--difficulty", choices=sorted(OCTAVE_RANGES), help="Octave range")
    parser.add_argument("--rhythm", choices=sorted(RHYTHM_PATTERNS), help="Rhythm pattern")
    parser.add_argument("--bpm", type=float, help="Tempo in beats per minute")
    parser.add_argument("--seconds", type=float, help="Session length in seconds")
    parser.add_argument("--training-wheels", action="store_true", default=None,
                        help="Re-anchor the timeline after late or early notes")
    parser.add_argument("--goal-beats", type=int, help="End the session once this many notes are reached")
    parser.add_argument("--song", help="Practice a MIDI/MusicXML file instead of generated material")
    parser.add_argument("--tempo-percent", type=float, default=100.0, help="Song tempo as a percentage")
    parser.add_argument("--port", type=int, help="MIDI input port index")
    parser.add_argument("--click-port", type=int, help="MIDI output port for metronome clicks")
    parser.add_argument("--list-ports", action="store_true", help="List MIDI input ports and exit")
    parser.add_argument("--keyboard", action="store_true", help="Play with the computer keyboard")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible sequences")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _apply_overrides(settings: PracticeSettings, args: argparse.Namespace) -> PracticeSettings:
    overrides = {
        "scale": args.scale,
        "grouping": args.grouping,
        "difficulty": args.difficulty,
        "rhythm": args.rhythm,
        "bpm": args.bpm,
        "session_seconds": args.seconds,
        "training_wheels": args.training_wheels,
        "goal_beats": args.goal_beats,
        "midi_port": args.port,
    }
    return replace(settings, **{k: v for k, v in overrides.items() if v is not None})


def _open_source(args: argparse.Namespace, settings: PracticeSettings) -> InputSource:
    if args.keyboard:
        import pygame

        pygame.init()
        pygame.display.set_mode((480, 120))
        pygame.display.set_caption(f"sightread — {KEYBOARD_LAYOUT}, Esc quits")
        return KeyboardInput()
    midi = MidiInput(settings.midi_port)
    midi.open()
    return midi


def _print_result(result: SessionResult) -> None:
    print()
    for key, value in result.summary().items():
        print(f"{key:>18}: {value}")
    print(f"{'timing advice':>18}: {result.timing.pattern.recommendation}")
    for recommendation in result.mistakes.recommendations:
        print(f"{'':>18}  - {recommendation}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_ports:
        for index, name in enumerate(MidiInput.list_ports()):
            print(f"{index}: {name}")
        return 0

    settings = _apply_overrides(load_settings(), args)
    click_output: MidiClickOutput | None = None
    source: InputSource | None = None
    try:
        config = settings.to_config()
        time_limit: float | None = config.session_seconds
        if args.song:
            song = load_song(args.song)
            notes = scale_tempo(song.notes, args.tempo_percent)
            config = replace(
                config, fixed_sequence=tuple(notes), bpm=song.bpm * args.tempo_percent / 100.0
            )
            time_limit = None
        session = SightReadingSession.from_config(config, rng=random.Random(args.seed))
        source = _open_source(args, settings)
        if args.click_port is not None:
            click_output = MidiClickOutput(args.click_port)
    except (ConfigurationError, SongLoadError, MidiDeviceError) as exc:
        if source is not None:
            source.close()
        print(f"sightread: {exc}", file=sys.stderr)
        return 2

    def show_status(index: int, status: NoteStatus) -> None:
        if status is not NoteStatus.COMPLETED:
            print(f"note {index + 1}: {status.value}")

    runner = SessionRunner(
        session,
        source,
        Metronome(config.bpm),
        on_status=show_status,
        on_click=click_output.send_click if click_output else None,
        latency_offset=settings.input_latency_offset,
        time_limit=time_limit,
    )
    if isinstance(source, KeyboardInput):
        source.on_quit = runner.stop

    print(f"{len(session.sequence)} notes at {config.bpm:.0f} BPM. Play when ready (Ctrl-C to stop).")
    try:
        result = runner.run()
    except KeyboardInterrupt:
        result = session.finish()
    finally:
        if click_output is not None:
            click_output.close()

    _print_result(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
