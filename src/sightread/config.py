"""Global constants and default settings."""

# Piano range (standard 88 keys: A0 = MIDI 21, C8 = MIDI 108)
MIDI_NOTE_MIN = 21
MIDI_NOTE_MAX = 108

DEFAULT_BPM = 120.0
DEFAULT_SESSION_SECONDS = 60.0

# Timing thresholds as fractions of one beat
ACCURATE_RATIO = 0.05
EARLY_RATIO = 0.10
LATE_RATIO = 0.15

# Float slack when comparing drifts against thresholds
TIMER_EPSILON_S = 1e-9

# Timing score table (seconds of absolute drift -> score)
SCORE_PERFECT_S = 0.025
SCORE_GOOD_S = 0.05
SCORE_OK_S = 0.1
SCORE_POOR_S = 0.2

# Drift stddev at which timing precision reaches 0
PRECISION_STDDEV_S = 0.2

# Pattern detection
PATTERN_WINDOW = 10
PATTERN_MIN_SAMPLES = 3
PATTERN_DRIFT_S = 0.02
PATTERN_SHARE = 0.7
PATTERN_CENTERED_S = 0.01
PATTERN_SCATTER_S = 0.1

# Session loop
OVERDUE_CHECK_INTERVAL_S = 0.05
RECALIBRATION_SANITY_BOUND_S = 10.0

# Notes starting within this window are one chord when loading songs
CHORD_GROUPING_S = 0.05

SCALES: dict[str, tuple[str, ...]] = {
    "C": ("C", "D", "E", "F", "G", "A", "B"),
    "F": ("F", "G", "A", "Bb", "C", "D", "E"),
    "G": ("G", "A", "B", "C", "D", "E", "F#"),
    "D": ("D", "E", "F#", "G", "A", "B", "C#"),
    "A": ("A", "B", "C#", "D", "E", "F#", "G#"),
    "E": ("E", "F#", "G#", "A", "B", "C#", "D#"),
    "B": ("B", "C#", "D#", "E", "F#", "G#", "A#"),
    "Bb": ("Bb", "C", "D", "Eb", "F", "G", "A"),
    "Eb": ("Eb", "F", "G", "Ab", "Bb", "C", "D"),
    "Ab": ("Ab", "Bb", "C", "Db", "Eb", "F", "G"),
    "Db": ("Db", "Eb", "F", "Gb", "Ab", "Bb", "C"),
    "Gb": ("Gb", "Ab", "Bb", "Cb", "Db", "Eb", "F"),
}

PITCH_CLASSES: dict[str, int] = {
    "C": 0, "B#": 0,
    "C#": 1, "Db": 1,
    "D": 2,
    "D#": 3, "Eb": 3,
    "E": 4, "Fb": 4,
    "F": 5, "E#": 5,
    "F#": 6, "Gb": 6,
    "G": 7,
    "G#": 8, "Ab": 8,
    "A": 9,
    "A#": 10, "Bb": 10,
    "B": 11, "Cb": 11,
}

# Octaves available to each hand: (right/treble, left/bass)
OCTAVE_RANGES: dict[str, tuple[tuple[int, ...], tuple[int, ...]]] = {
    "half-octave": ((4,), (3,)),
    "full-octave": ((4, 5), (2, 3)),
    "full-scale": ((4, 5, 6), (2, 3, 4)),
}

# Named rhythm patterns: beat durations and suggested tempo
RHYTHM_PATTERNS: dict[str, tuple[tuple[float, ...], float]] = {
    "quarter-notes": ((1.0,), 120.0),
    "mixed-simple": ((1.0, 2.0), 100.0),
    "mixed-complex": ((0.5, 1.0, 2.0, 4.0), 80.0),
    "syncopated": ((0.5, 1.5, 1.0), 90.0),
}

GRADE_LADDER: tuple[tuple[float, str], ...] = (
    (0.95, "A+"),
    (0.90, "A"),
    (0.85, "A-"),
    (0.80, "B+"),
    (0.75, "B"),
    (0.70, "B-"),
    (0.65, "C+"),
    (0.60, "C"),
    (0.55, "C-"),
    (0.50, "D"),
)
