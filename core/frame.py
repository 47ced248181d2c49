"""
Per-frame resolution pipeline.

clock value -> display instant (symbolic time) -> viewport -> annotations,
dimming and activity -> Frame, a ready-to-draw description consumed by the
renderer. Everything here is synchronous and keeps no state between calls.
"""
import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence, Tuple

from core.annotations import is_active, is_dimmed, resolve
from core.constants import BEAT_GRID_INTERVAL
from core.models import Annotation, AnnotationType, Note, PlaybackMode, SyncPoint
from core.sync import TimelineMapper
from core.viewport import Placement, PresentationMode, ViewState, Viewport, resolve_viewport


@dataclass(frozen=True)
class ResolvedNote:
    """One note with everything the renderer needs."""
    note: Note
    placement: Placement
    annotations: Tuple[AnnotationType, ...]
    dimmed: bool
    active: bool


@dataclass(frozen=True)
class AnchorMarker:
    point: SyncPoint
    position: float


@dataclass(frozen=True)
class Frame:
    """
    Resolved description of one display refresh.

    Attributes:
        clock_time: Raw transport position
        mode: Which transport produced clock_time
        instant: Display instant on the symbolic timeline
        window_start: Visible window start (symbolic seconds)
        window_end: Visible window end (symbolic seconds)
        playhead: Playhead position along the time axis
        notes: Resolved notes in input order
        markers: Sync points inside the window
        grid: Time-axis positions of beat grid lines
        synced: Whether any sync points are present
    """
    clock_time: float
    mode: PlaybackMode
    instant: float
    window_start: float
    window_end: float
    playhead: float
    notes: Tuple[ResolvedNote, ...] = field(default_factory=tuple)
    markers: Tuple[AnchorMarker, ...] = field(default_factory=tuple)
    grid: Tuple[float, ...] = field(default_factory=tuple)
    synced: bool = False

    @property
    def active_notes(self) -> Tuple[ResolvedNote, ...]:
        return tuple(n for n in self.notes if n.active)


def display_instant(clock_time: float, mode: PlaybackMode, mapper: TimelineMapper) -> float:
    """Convert the transport position to symbolic time."""
    if PlaybackMode(mode) is PlaybackMode.PERFORMANCE:
        return mapper.to_symbolic_time(clock_time)
    return clock_time


def grid_lines(viewport: Viewport, view: ViewState,
               interval: float = BEAT_GRID_INTERVAL) -> Tuple[float, ...]:
    """
    Time-axis positions of grid lines every interval seconds across the window.

    Empty when lines would sit closer than one unit apart.
    """
    if interval <= 0 or not math.isfinite(viewport.window_start) or not math.isfinite(viewport.window_end):
        return ()
    if (viewport.window_end - viewport.window_start) / interval > view.extent:
        return ()
    lines = []
    step = math.floor(viewport.window_start / interval)
    while step * interval < viewport.window_end:
        lines.append(viewport.coordinate(step * interval, view))
        step += 1
    return tuple(lines)


def resolve_frame(clock_time: float, mode: PlaybackMode, mapper: TimelineMapper,
                  notes: Sequence[Note], annotations: Iterable[Annotation],
                  view: ViewState) -> Frame:
    """
    Resolve one frame.

    Args:
        clock_time: Transport position in seconds of the live timeline
        mode: Which timeline the transport runs on
        mapper: Timeline mapper over the current anchor set
        notes: Notes on the symbolic timeline
        annotations: Annotation library snapshot
        view: View state snapshot for this frame

    Returns:
        Frame ready for the renderer
    """
    annotations = tuple(annotations)
    instant = display_instant(clock_time, mode, mapper)
    viewport = resolve_viewport(notes, instant, view)

    resolved = tuple(
        ResolvedNote(
            note=placed.note,
            placement=placed.placement,
            annotations=resolve(placed.note, annotations),
            dimmed=is_dimmed(placed.note.track, view.tracks),
            active=is_active(placed.note, instant),
        )
        for placed in viewport.notes
    )

    markers = tuple(
        AnchorMarker(point, viewport.coordinate(point.symbolic_time, view))
        for point in mapper.store.snapshot()
        if viewport.window_start <= point.symbolic_time < viewport.window_end
    )

    grid = grid_lines(viewport, view) if view.mode is PresentationMode.SCROLL else ()

    return Frame(
        clock_time=clock_time,
        mode=PlaybackMode(mode),
        instant=instant,
        window_start=viewport.window_start,
        window_end=viewport.window_end,
        playhead=view.playhead_offset,
        notes=resolved,
        markers=markers,
        grid=grid,
        synced=mapper.is_synced,
    )
