"""
Score Canvas - draws a resolved Frame onto a DearPyGui drawlist.

The canvas holds no timing logic. It receives a Frame from the per-frame
pipeline and draws grid, notes, annotation effects, sync markers and the
playhead. Annotation effects are looked up in EFFECT_DRAWERS by type.
"""
import math
from typing import Callable, Collection, Dict, List, Optional, Tuple

import dearpygui.dearpygui as dpg

from core.constants import DEFAULT_NOTE_HEIGHT, hex_to_rgba
from core.frame import Frame, ResolvedNote
from core.models import AnnotationType, Note, Track
from core.viewport import PresentationMode, ViewState
from ui.theme import CanvasTheme

Point = Tuple[float, float]
Rect = Tuple[Point, Point]

DIMMED_ALPHA = 0.2
ACTIVE_ALPHA = 1.0


def note_alpha(resolved: ResolvedNote) -> float:
    """Prominence of a note: dimmed, sounding, or scaled by velocity."""
    if resolved.dimmed:
        return DIMMED_ALPHA
    if resolved.active:
        return ACTIVE_ALPHA
    return resolved.note.velocity * 0.7 + 0.3


def note_rect(resolved: ResolvedNote, view: ViewState,
              note_height: float = DEFAULT_NOTE_HEIGHT) -> Rect:
    """
    Screen rectangle of a placed note as (top-left, bottom-right).

    Scroll mode runs time along x with the pitch coordinate as the note's
    vertical centre. Cinema mode runs time upward, so the note grows from
    its start position toward the top of the screen.
    """
    p = resolved.placement
    if view.mode is PresentationMode.CINEMA:
        width = p.cross_size or note_height
        return (p.cross - width / 2, p.position - p.length), (p.cross + width / 2, p.position)
    return (p.position, p.cross - note_height / 2), (p.position + p.length, p.cross + note_height / 2)


def note_at(frame: Frame, view: ViewState, x: float, y: float,
            note_height: float = DEFAULT_NOTE_HEIGHT, slop: float = 2.0) -> Optional[ResolvedNote]:
    """Topmost drawn note under a point (within slop units), or None."""
    for resolved in reversed(frame.notes):
        (x1, y1), (x2, y2) = note_rect(resolved, view, note_height)
        if x1 - slop <= x <= x2 + slop and y1 - slop <= y <= y2 + slop:
            return resolved
    return None


def wave_points(rect: Rect, phase: float, amplitude: float = 3.0, wavelength: float = 12.0) -> List[Point]:
    """Sine polyline along the top edge of a rectangle."""
    (x1, y1), (x2, _) = rect
    points = []
    x = x1
    while x < x2:
        points.append((x, y1 - amplitude + amplitude * math.sin((x - x1) / wavelength * 2 * math.pi + phase)))
        x += 2.0
    points.append((x2, y1 - amplitude + amplitude * math.sin((x2 - x1) / wavelength * 2 * math.pi + phase)))
    return points


def _rgba(rgb, alpha: float) -> tuple:
    return tuple(list(rgb[:3]) + [int(max(0.0, min(alpha, 1.0)) * 255)])


# Effect drawers: (drawlist, rect, rgb, alpha, phase)

def _draw_wavy(drawlist, rect: Rect, rgb, alpha: float, phase: float):
    dpg.draw_polyline(wave_points(rect, phase), color=_rgba(rgb, alpha), thickness=1, parent=drawlist)


def _draw_spark(drawlist, rect: Rect, rgb, alpha: float, phase: float):
    (x1, y1), (_, y2) = rect
    cy = (y1 + y2) / 2
    radius = 4 + 2 * abs(math.sin(phase * 2))
    for i in range(6):
        angle = i * math.pi / 3 + phase
        dpg.draw_line((x1, cy), (x1 + math.cos(angle) * radius, cy + math.sin(angle) * radius),
                      color=_rgba(rgb, alpha), thickness=1, parent=drawlist)


def _draw_punch(drawlist, rect: Rect, rgb, alpha: float, phase: float):
    (x1, y1), (x2, y2) = rect
    dpg.draw_rectangle((x1 - 2, y1 - 2), (x2 + 2, y2 + 2), color=_rgba(rgb, alpha),
                       thickness=3, parent=drawlist)


def _draw_glow(drawlist, rect: Rect, rgb, alpha: float, phase: float):
    (x1, y1), (x2, y2) = rect
    pad = 4 + 2 * math.sin(phase)
    dpg.draw_rectangle((x1 - pad, y1 - pad), (x2 + pad, y2 + pad), fill=_rgba(rgb, alpha * 0.3),
                       color=_rgba(rgb, 0), rounding=pad, parent=drawlist)


def _draw_phrase(drawlist, rect: Rect, rgb, alpha: float, phase: float):
    (x1, y1), (x2, _) = rect
    color = _rgba(rgb, alpha * 0.8)
    top = y1 - 6
    dpg.draw_polyline([(x1, y1 - 2), (x1, top), (x2, top), (x2, y1 - 2)],
                      color=color, thickness=1, parent=drawlist)


def _draw_accent(drawlist, rect: Rect, rgb, alpha: float, phase: float):
    (x1, y1), _ = rect
    dpg.draw_triangle((x1, y1 - 3), (x1 + 4, y1 - 9), (x1 + 8, y1 - 3),
                      fill=_rgba(rgb, alpha), color=_rgba(rgb, alpha), parent=drawlist)


def _draw_tremolo(drawlist, rect: Rect, rgb, alpha: float, phase: float):
    (x1, y1), (x2, y2) = rect
    jitter = 1.5 * math.sin(phase * 8)
    x = x1 + 3
    while x < x2 - 1:
        dpg.draw_line((x + jitter, y1 - 3), (x - jitter, y2 + 3), color=_rgba(rgb, alpha * 0.7),
                      thickness=1, parent=drawlist)
        x += 5


def _draw_legato(drawlist, rect: Rect, rgb, alpha: float, phase: float):
    (x1, y1), (x2, _) = rect
    mid = ((x1 + x2) / 2, y1 - 10)
    dpg.draw_bezier_quadratic((x1, y1 - 2), mid, (x2, y1 - 2), color=_rgba(rgb, alpha),
                              thickness=1, parent=drawlist)


EFFECT_DRAWERS: Dict[AnnotationType, Callable] = {
    AnnotationType.WAVY: _draw_wavy,
    AnnotationType.SPARK: _draw_spark,
    AnnotationType.PUNCH: _draw_punch,
    AnnotationType.GLOW: _draw_glow,
    AnnotationType.PHRASE: _draw_phrase,
    AnnotationType.ACCENT: _draw_accent,
    AnnotationType.TREMOLO: _draw_tremolo,
    AnnotationType.LEGATO: _draw_legato,
}


class ScoreCanvas:
    """Drawlist renderer for resolved frames."""

    def __init__(self, width: int = 1000, height: int = 400,
                 note_height: float = DEFAULT_NOTE_HEIGHT):
        self.width = width
        self.height = height
        self.note_height = note_height

        self.theme = CanvasTheme()

        # DearPyGui IDs
        self.drawlist_id = None
        self._canvas_container = None

    def create(self, parent=None) -> int:
        """Create the drawlist inside a child window so it follows resizes."""
        kwargs = {"parent": parent} if parent is not None else {}
        with dpg.child_window(border=False, **kwargs) as canvas_container:
            self.drawlist_id = dpg.add_drawlist(width=self.width, height=self.height)
            self._canvas_container = canvas_container
        return self.drawlist_id

    def get_size(self) -> Tuple[int, int]:
        """Current canvas size from the container (for auto-resize support)."""
        if self._canvas_container and dpg.does_item_exist(self._canvas_container):
            rect = dpg.get_item_rect_size(self._canvas_container)
            if rect[0] > 0 and rect[1] > 0:
                return int(rect[0]), int(rect[1])
        return self.width, self.height

    def draw(self, frame: Frame, view: ViewState, selected: Collection[Note] = ()):
        """Redraw everything for one frame, outlining the selected notes."""
        if not self.drawlist_id:
            return

        width, height = self.get_size()
        if (width, height) != (self.width, self.height):
            self.width, self.height = width, height
            dpg.configure_item(self.drawlist_id, width=width, height=height)

        dpg.delete_item(self.drawlist_id, children_only=True)

        dpg.draw_rectangle((0, 0), (self.width, self.height),
                           fill=tuple(self.theme.bg_color + [255]), parent=self.drawlist_id)

        if view.mode is PresentationMode.CINEMA:
            self._draw_lanes(view.tracks)
        self._draw_grid(frame)
        self._draw_notes(frame, view, selected)
        self._draw_markers(frame, view)
        self._draw_playhead(frame, view)

        if not frame.synced:
            dpg.draw_text((10, 10), "No sync points - showing MIDI time", size=13,
                          color=tuple(self.theme.unsynced_text_color + [255]),
                          parent=self.drawlist_id)

    def _draw_grid(self, frame: Frame):
        color = tuple(self.theme.grid_line_color + [255])
        for x in frame.grid:
            dpg.draw_line((x, 0), (x, self.height), color=color,
                          thickness=self.theme.grid_line_thickness, parent=self.drawlist_id)

    def _draw_lanes(self, tracks: Tuple[Track, ...]):
        if not tracks:
            return
        lane_width = self.width / len(tracks)
        color = tuple(self.theme.lane_divider_color + [255])
        for i, track in enumerate(tracks):
            x = i * lane_width
            if i > 0:
                dpg.draw_line((x, 0), (x, self.height), color=color, parent=self.drawlist_id)
            dpg.draw_text((x + 6, self.height - 18), track.name, size=12,
                          color=hex_to_rgba(track.color, 120), parent=self.drawlist_id)

    def _draw_notes(self, frame: Frame, view: ViewState, selected: Collection[Note]):
        colors = {t.id: hex_to_rgba(t.color) for t in view.tracks}
        effect_rgb = self.theme.effect_color
        phase = frame.instant * 2 * math.pi
        selection = tuple(self.theme.selection_color + [255])

        for resolved in frame.notes:
            rect = note_rect(resolved, view, self.note_height)
            alpha = note_alpha(resolved)
            rgb = colors.get(resolved.note.track, (102, 102, 102, 255))
            fill = _rgba(rgb, alpha)

            dpg.draw_rectangle(rect[0], rect[1], fill=fill, color=fill,
                               thickness=1, parent=self.drawlist_id)

            if resolved.active and not resolved.dimmed:
                dpg.draw_rectangle(rect[0], rect[1], color=_rgba(effect_rgb, 0.8),
                                   thickness=1, parent=self.drawlist_id)

            if resolved.note in selected:
                dpg.draw_rectangle(rect[0], rect[1], color=selection, thickness=2, parent=self.drawlist_id)

            for annotation_type in resolved.annotations:
                drawer = EFFECT_DRAWERS.get(annotation_type)
                if drawer:
                    drawer(self.drawlist_id, rect, effect_rgb, alpha, phase)

    def _draw_markers(self, frame: Frame, view: ViewState):
        color = tuple(self.theme.marker_color + [255])
        for marker in frame.markers:
            if view.mode is PresentationMode.CINEMA:
                dpg.draw_line((0, marker.position), (self.width, marker.position),
                              color=color, thickness=1, parent=self.drawlist_id)
                dpg.draw_text((4, marker.position - 14), marker.point.label, size=11,
                              color=color, parent=self.drawlist_id)
            else:
                dpg.draw_line((marker.position, 0), (marker.position, self.height),
                              color=color, thickness=1, parent=self.drawlist_id)
                dpg.draw_text((marker.position + 3, 2), marker.point.label, size=11,
                              color=color, parent=self.drawlist_id)

    def _draw_playhead(self, frame: Frame, view: ViewState):
        color = tuple(self.theme.playhead_color + [255])
        if view.mode is PresentationMode.CINEMA:
            p1, p2 = (0, frame.playhead), (self.width, frame.playhead)
        else:
            p1, p2 = (frame.playhead, 0), (frame.playhead, self.height)
        dpg.draw_line(p1, p2, color=color, thickness=self.theme.playhead_thickness,
                      parent=self.drawlist_id)

