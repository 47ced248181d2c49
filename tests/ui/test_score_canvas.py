"""Renderer helpers that need no DearPyGui context."""
import pytest

from core.frame import Frame, ResolvedNote
from core.models import AnnotationType, Note, PlaybackMode, Track
from core.viewport import Placement, ViewState
from ui.views.PlayerView import WallClock, toggled_selection
from ui.widgets.ScoreCanvas import EFFECT_DRAWERS, note_alpha, note_at, note_rect, wave_points


def resolved(velocity=0.5, dimmed=False, active=False, placement=None):
    return ResolvedNote(
        note=Note(pitch=60, start=0.0, duration=1.0, velocity=velocity),
        placement=placement or Placement(position=100.0, length=50.0, cross=200.0, cross_size=12.0),
        annotations=(),
        dimmed=dimmed,
        active=active,
    )


def test_every_annotation_type_has_a_drawer():
    assert set(EFFECT_DRAWERS) == set(AnnotationType)


def test_note_alpha():
    assert note_alpha(resolved(dimmed=True, active=True)) == 0.2
    assert note_alpha(resolved(active=True)) == 1.0
    assert note_alpha(resolved(velocity=0.5)) == pytest.approx(0.65)
    assert note_alpha(resolved(velocity=0.0)) == pytest.approx(0.3)


def test_note_rect_scroll():
    view = ViewState.scroll((Track(0, "Piano"),), 1000, 400)
    assert note_rect(resolved(), view, note_height=4) == ((100.0, 198.0), (150.0, 202.0))


def test_note_rect_cinema_grows_upward():
    view = ViewState.cinema((Track(0, "Piano"),), 400, 800)
    assert note_rect(resolved(), view) == ((194.0, 50.0), (206.0, 100.0))


def test_note_at_picks_topmost_note():
    low = resolved()
    high = resolved(placement=Placement(position=120.0, length=50.0, cross=201.0))
    frame = Frame(clock_time=0.0, mode=PlaybackMode.SYMBOLIC, instant=0.0, window_start=0.0,
                  window_end=10.0, playhead=0.0, notes=(low, high))
    view = ViewState.scroll((Track(0, "Piano"),), 1000, 400)

    assert note_at(frame, view, 110, 200, note_height=4) is low
    assert note_at(frame, view, 130, 200, note_height=4) is high
    assert note_at(frame, view, 110, 203.5, note_height=4) is low
    assert note_at(frame, view, 110, 220, note_height=4) is None


def test_wave_points_span_the_note():
    points = wave_points(((10.0, 20.0), (30.0, 24.0)), phase=0.0)
    assert points[0][0] == 10.0 and points[-1][0] == 30.0
    assert all(14.0 <= y <= 20.0 for _, y in points)


def test_wall_clock():
    now = [100.0]
    clock = WallClock(now=lambda: now[0])
    assert clock.position == 0.0 and not clock.playing

    clock.play()
    now[0] = 102.5
    assert clock.position == pytest.approx(2.5)

    clock.pause()
    now[0] = 110.0
    assert clock.position == pytest.approx(2.5)

    clock.seek(7.0)
    clock.play()
    now[0] = 111.0
    assert clock.position == pytest.approx(8.0)

    clock.stop()
    assert clock.position == 0.0


def test_toggled_selection():
    a, b = Note(60, 0.0, 1.0), Note(64, 1.0, 1.0)

    assert toggled_selection([a], b) == [b]
    assert toggled_selection([a], b, extend=True) == [a, b]
    assert toggled_selection([a, b], a, extend=True) == [b]
    assert toggled_selection([], a, extend=True) == [a]
