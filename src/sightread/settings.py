"""User practice settings stored in ~/.sightread/settings.json."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

from sightread.config import DEFAULT_BPM, DEFAULT_SESSION_SECONDS
from sightread.models import Goal, SessionConfig

logger = logging.getLogger(__name__)

SETTINGS_PATH = Path.home() / ".sightread" / "settings.json"
_SECTION = "practice"


@dataclass
class PracticeSettings:
    scale: str = "C"
    grouping: str = "single-notes"
    difficulty: str = "half-octave"
    rhythm: str = "quarter-notes"
    bpm: float = DEFAULT_BPM
    session_seconds: float = DEFAULT_SESSION_SECONDS
    training_wheels: bool = False
    goal_beats: int | None = None
    goal_accuracy: float = 0.9
    input_latency_offset_ms: float = 0.0
    midi_port: int | None = None

    @property
    def input_latency_offset(self) -> float:
        return self.input_latency_offset_ms / 1000.0

    def to_config(self) -> SessionConfig:
        """Build a validated session config; raises ConfigurationError on bad values."""
        goal = None
        if self.goal_beats is not None:
            goal = Goal(beats=self.goal_beats, accuracy=self.goal_accuracy)
        return SessionConfig(
            scale=self.scale,
            grouping=self.grouping,
            difficulty=self.difficulty,
            rhythm_pattern=self.rhythm,
            bpm=self.bpm,
            goal=goal,
            training_wheels=self.training_wheels,
            session_seconds=self.session_seconds,
        )


_NUMBER = (int, float)
_FIELD_TYPES = {
    "scale": str,
    "grouping": str,
    "difficulty": str,
    "rhythm": str,
    "bpm": _NUMBER,
    "session_seconds": _NUMBER,
    "training_wheels": bool,
    "goal_beats": (int, type(None)),
    "goal_accuracy": _NUMBER,
    "input_latency_offset_ms": _NUMBER,
    "midi_port": (int, type(None)),
}


def _read(path: Path) -> dict:
    return json.loads(path.read_text())


def _mistyped(section: dict) -> list[str]:
    bad = []
    for name, value in section.items():
        expected = _FIELD_TYPES[name]
        if isinstance(value, bool) and expected is not bool:
            bad.append(name)
        elif not isinstance(value, expected):
            bad.append(name)
    return bad


def load_settings(path: Path | None = None) -> PracticeSettings:
    """Load practice settings from disk, returning defaults if absent or unreadable."""
    path = path or SETTINGS_PATH
    if not path.exists():
        return PracticeSettings()
    try:
        section = _read(path).get(_SECTION, {})
        values = {k: v for k, v in section.items() if k in _FIELD_TYPES}
    except (OSError, ValueError, TypeError, AttributeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return PracticeSettings()
    bad = _mistyped(values)
    if bad:
        logger.warning("Ignoring settings file %s: wrong type for %s", path, ", ".join(sorted(bad)))
        return PracticeSettings()
    return PracticeSettings(**values)


def save_settings(settings: PracticeSettings, path: Path | None = None) -> None:
    """Persist practice settings, keeping any other sections already in the file."""
    path = path or SETTINGS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    data: dict = {}
    if path.exists():
        try:
            data = _read(path)
        except (OSError, ValueError) as exc:
            logger.warning("Overwriting unreadable settings file %s: %s", path, exc)
        if not isinstance(data, dict):
            data = {}
    data[_SECTION] = asdict(settings)
    path.write_text(json.dumps(data, indent=2))
