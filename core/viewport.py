"""
Viewport resolution: which notes fall inside the visible time window and
where they are placed.

resolve_viewport() is a pure projection of (notes, instant, ViewState). It
never mutates its inputs and returns the same result for the same inputs.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from core.constants import (
    DEFAULT_UNITS_PER_SECOND, DEFAULT_PLAYHEAD_OFFSET, MIN_UNITS_PER_SECOND, PITCH_MARGIN,
    EMPTY_TRACK_PITCH_RANGE, MIN_NOTE_LENGTH_SCROLL, MIN_NOTE_LENGTH_CINEMA,
    CINEMA_SECONDS_VISIBLE, CINEMA_TRACK_PADDING,
)
from core.annotations import is_dimmed, visible_notes
from core.models import Note, Track


class PresentationMode(Enum):
    """Where the playhead sits and which way time runs."""
    SCROLL = "scroll"  # playhead at a fixed offset, time runs left to right
    CINEMA = "cinema"  # playhead centred, future notes above, time runs upward


@dataclass(frozen=True)
class ViewState:
    """
    Externally owned view state, passed into every frame.

    Attributes:
        tracks: Track roster with current visible/muted/solo flags
        mode: Presentation mode
        units_per_second: Time-axis scale
        extent: Length of the time axis in units
        cross_extent: Length of the pitch axis in units
        playhead_offset: Playhead position along the time axis
        cross_margin: Units kept clear at both ends of the pitch axis
        min_length: Minimum drawn length of a note along the time axis
        lanes: Give every track its own column with its own pitch range
        lane_padding: Inner padding of each lane
        hide_dimmed: Drop dimmed notes instead of returning them
    """
    tracks: Tuple[Track, ...] = ()
    mode: PresentationMode = PresentationMode.SCROLL
    units_per_second: float = DEFAULT_UNITS_PER_SECOND
    extent: float = 1000.0
    cross_extent: float = 400.0
    playhead_offset: float = DEFAULT_PLAYHEAD_OFFSET
    cross_margin: float = 20.0
    min_length: float = MIN_NOTE_LENGTH_SCROLL
    lanes: bool = False
    lane_padding: float = CINEMA_TRACK_PADDING
    hide_dimmed: bool = False

    def __post_init__(self):
        # Floor the time-axis scale; also catches NaN
        if not self.units_per_second >= MIN_UNITS_PER_SECOND:
            object.__setattr__(self, "units_per_second", MIN_UNITS_PER_SECOND)

    @classmethod
    def scroll(cls, tracks: Sequence[Track], width: float, height: float,
               units_per_second: float = DEFAULT_UNITS_PER_SECOND,
               playhead_offset: float = DEFAULT_PLAYHEAD_OFFSET) -> "ViewState":
        """Horizontal piano-roll layout with the playhead near the left edge."""
        return cls(
            tracks=tuple(tracks),
            mode=PresentationMode.SCROLL,
            units_per_second=units_per_second,
            extent=width,
            cross_extent=height,
            playhead_offset=playhead_offset,
        )

    @classmethod
    def cinema(cls, tracks: Sequence[Track], width: float, height: float,
               seconds_visible: float = CINEMA_SECONDS_VISIBLE,
               hide_dimmed: bool = False) -> "ViewState":
        """Vertical full-screen layout, one lane per track, playhead centred."""
        seconds_visible = max(seconds_visible, 1e-6)
        return cls(
            tracks=tuple(tracks),
            mode=PresentationMode.CINEMA,
            units_per_second=height / seconds_visible,
            extent=height,
            cross_extent=width,
            playhead_offset=height / 2,
            cross_margin=0.0,
            min_length=MIN_NOTE_LENGTH_CINEMA,
            lanes=True,
            hide_dimmed=hide_dimmed,
        )

    @property
    def direction(self) -> float:
        """+1 when later times sit at larger coordinates."""
        return -1.0 if self.mode is PresentationMode.CINEMA else 1.0

    def window(self, instant: float) -> Tuple[float, float]:
        """Half-open visible time window [start, end) around the instant."""
        before = self.playhead_offset / self.units_per_second
        after = (self.extent - self.playhead_offset) / self.units_per_second
        return instant - before, instant + after


@dataclass(frozen=True)
class PitchRange:
    low: int
    high: int

    @property
    def span(self) -> float:
        return float(max(self.high - self.low, 1))

    def normalize(self, pitch: int) -> float:
        return (pitch - self.low) / self.span


@dataclass(frozen=True)
class Placement:
    """
    Screen-space placement of one note.

    position/length run along the time axis (position is the note start);
    cross runs along the pitch axis, with cross_size the lane-derived
    note width in lane layout (0 when the renderer picks its own).
    """
    position: float
    length: float
    cross: float
    cross_size: float = 0.0
    lane: int = 0


@dataclass(frozen=True)
class PlacedNote:
    note: Note
    placement: Placement


@dataclass(frozen=True)
class Viewport:
    instant: float
    window_start: float
    window_end: float
    pitch_range: Optional[PitchRange]
    notes: Tuple[PlacedNote, ...] = field(default_factory=tuple)

    def coordinate(self, time: float, view: ViewState) -> float:
        """Time-axis coordinate of an arbitrary symbolic time."""
        return view.playhead_offset + view.direction * (time - self.instant) * view.units_per_second


def observed_pitch_range(notes: Sequence[Note], margin: int = PITCH_MARGIN) -> Optional[PitchRange]:
    """Pitch range of the given notes widened by the margin; None if empty."""
    if not notes:
        return None
    pitches = np.fromiter((n.pitch for n in notes), dtype=int, count=len(notes))
    return PitchRange(int(pitches.min()) - margin, int(pitches.max()) + margin)


def track_pitch_ranges(notes: Sequence[Note], tracks: Sequence[Track],
                       margin: int = PITCH_MARGIN) -> Dict[int, PitchRange]:
    """Per-track pitch range; empty tracks get a default octave."""
    ranges = {}
    for track in tracks:
        observed = observed_pitch_range([n for n in notes if n.track == track.id], margin)
        ranges[track.id] = observed or PitchRange(*EMPTY_TRACK_PITCH_RANGE)
    return ranges


def in_window(notes: Sequence[Note], window_start: float, window_end: float) -> np.ndarray:
    """Boolean mask of notes whose [start, end) intersects [window_start, window_end)."""
    if not notes:
        return np.zeros(0, dtype=bool)
    starts = np.fromiter((n.start for n in notes), dtype=float, count=len(notes))
    ends = starts + np.fromiter((n.duration for n in notes), dtype=float, count=len(notes))
    return (starts < window_end) & (ends > window_start)


def resolve_viewport(notes: Sequence[Note], instant: float, view: ViewState) -> Viewport:
    """
    Select and place the notes visible at an instant.

    Args:
        notes: Notes on the symbolic timeline
        instant: Display instant on the symbolic timeline
        view: Current view state

    Returns:
        Viewport with the window and the placed notes in input order
    """
    window_start, window_end = view.window(instant)

    visible = visible_notes(notes, view.tracks)
    if view.hide_dimmed:
        visible = [n for n in visible if not is_dimmed(n.track, view.tracks)]

    pitch_range = observed_pitch_range(visible)
    lane_ranges = track_pitch_ranges(notes, view.tracks) if view.lanes else {}
    lane_index = {t.id: i for i, t in enumerate(view.tracks)}
    lane_width = view.cross_extent / max(len(view.tracks), 1)

    mask = in_window(visible, window_start, window_end)
    ups = view.units_per_second
    placed = []
    for note, keep in zip(visible, mask):
        if not keep:
            continue
        position = view.playhead_offset + view.direction * (note.start - instant) * ups
        length = max(note.duration * ups, view.min_length)

        if view.lanes:
            lane = lane_index[note.track]
            area = max(lane_width - view.lane_padding * 2, 0.0)
            cross = lane * lane_width + view.lane_padding + lane_ranges[note.track].normalize(note.pitch) * area
            placement = Placement(position, length, cross, max(8.0, area / 20), lane)
        else:
            usable = max(view.cross_extent - view.cross_margin * 2, 0.0)
            cross = view.cross_extent - pitch_range.normalize(note.pitch) * usable - view.cross_margin
            placement = Placement(position, length, cross)

        placed.append(PlacedNote(note, placement))

    return Viewport(instant, window_start, window_end, pitch_range, tuple(placed))
