"""
Musical and display constants and utilities.

MIDI note names, the track color palette, General MIDI instrument
families, playback defaults and time formatting.
"""
import math
import re

# MIDI note number to name mapping
MIDI_NOTE_NAMES = [
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"
]

# Track colors, assigned by roster index and cycled
TRACK_COLORS = [
    "#3B82F6",  # Blue
    "#10B981",  # Green
    "#F59E0B",  # Amber
    "#EF4444",  # Red
    "#8B5CF6",  # Purple
    "#EC4899",  # Pink
    "#06B6D4",  # Cyan
    "#84CC16",  # Lime
]

# General MIDI instrument families (program // 8)
GM_FAMILIES = [
    "Piano", "Chromatic Percussion", "Organ", "Guitar",
    "Bass", "Strings", "Ensemble", "Brass",
    "Reed", "Pipe", "Synth Lead", "Synth Pad",
    "Synth Effects", "Ethnic", "Percussive", "Sound Effects",
]

DEFAULT_BPM = 120
DEFAULT_TIME_SIGNATURE = (4, 4)

# Playback view defaults (scroll presentation)
DEFAULT_UNITS_PER_SECOND = 100.0
MIN_UNITS_PER_SECOND = 1.0
ZOOM_RANGE = (50.0, 300.0)  # px/s offered by the zoom slider
DEFAULT_PLAYHEAD_OFFSET = 150.0
DEFAULT_NOTE_HEIGHT = 4.0
BEAT_GRID_INTERVAL = 0.5  # seconds

# Cinema presentation defaults
CINEMA_SECONDS_VISIBLE = 8.0
CINEMA_TRACK_PADDING = 10.0

# Pitch axis
PITCH_MARGIN = 2  # semitones above and below observed range
EMPTY_TRACK_PITCH_RANGE = (60, 72)

# Minimum visual sizes along the time axis
MIN_NOTE_LENGTH_SCROLL = 2.0
MIN_NOTE_LENGTH_CINEMA = 4.0

# Anchor hit testing on the piano roll, in pixels
SYNC_POINT_HIT_THRESHOLD = 10.0


def midi_note_to_name(note_number: int) -> str:
    """
    Convert MIDI note number to name with octave.

    Args:
        note_number: MIDI note (0-127)

    Returns:
        Note name (e.g., "C4", "A#3")

    Example:
        >>> midi_note_to_name(60)
        'C4'
        >>> midi_note_to_name(69)
        'A4'
    """
    if not 0 <= note_number <= 127:
        raise ValueError(f"MIDI note must be 0-127, got {note_number}")
    octave = (note_number // 12) - 1
    note_name = MIDI_NOTE_NAMES[note_number % 12]
    return f"{note_name}{octave}"


def get_track_color(index: int) -> str:
    """Color for a track by its roster index."""
    return TRACK_COLORS[index % len(TRACK_COLORS)]


def hex_to_rgba(color: str, alpha: int = 255) -> tuple:
    """
    Convert "#RRGGBB" to an (r, g, b, a) tuple.

    Falls back to mid grey for anything unparsable.
    """
    value = color.lstrip("#")
    if len(value) != 6:
        return (102, 102, 102, alpha)
    try:
        return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16), alpha)
    except ValueError:
        return (102, 102, 102, alpha)


def gm_family_name(program: int) -> str:
    """General MIDI family for a program number (0-127)."""
    if not 0 <= program <= 127:
        return "Unknown"
    return GM_FAMILIES[program // 8]


def title_from_id(song_id: str) -> str:
    """
    Derive a display title from a catalog id.

    Example:
        >>> title_from_id("bach_846")
        'Bach 846'
        >>> title_from_id("clair-de-lune")
        'Clair-De-Lune'
    """
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), song_id.replace("_", " "))


def format_time(seconds: float) -> str:
    """
    Format time as M:SS.cc

    Example:
        >>> format_time(65.25)
        '1:05.25'
    """
    if not math.isfinite(seconds) or seconds < 0:
        seconds = 0.0
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    hundredths = int(round((seconds % 1) * 100, 6))
    return f"{mins}:{secs:02d}.{min(hundredths, 99):02d}"

