import pytest

from core.anchors import AnchorStore
from core.frame import display_instant, grid_lines, resolve_frame
from core.models import Annotation, AnnotationScope, AnnotationType, Note, PlaybackMode, SyncPoint, Track
from core.sync import TimelineMapper
from core.viewport import ViewState, resolve_viewport


@pytest.fixture
def mapper():
    store = AnchorStore([
        SyncPoint("sp-a", 0, 0, "Sync 1"),
        SyncPoint("sp-b", 10, 12, "Sync 2"),
        SyncPoint("sp-c", 20, 19, "Sync 3"),
    ])
    return TimelineMapper(store)


TRACKS = (Track(0, "Piano"), Track(1, "Bass", muted=True))
NOTES = (
    Note(pitch=60, start=9.5, duration=1.0, track=0),
    Note(pitch=48, start=10.0, duration=2.0, track=1),
    Note(pitch=64, start=12.0, duration=0.5, track=0),
)


def test_display_instant(mapper):
    assert display_instant(12.0, PlaybackMode.PERFORMANCE, mapper) == pytest.approx(10.0)
    assert display_instant(12.0, PlaybackMode.SYMBOLIC, mapper) == 12.0


def test_frame_from_performance_clock(mapper):
    annotations = [Annotation("ad-1", AnnotationType.GLOW, AnnotationScope.RANGE, 9, 11)]
    view = ViewState.scroll(TRACKS, width=1000, height=400)
    frame = resolve_frame(12.0, PlaybackMode.PERFORMANCE, mapper, NOTES, annotations, view)

    assert frame.instant == pytest.approx(10.0)
    assert (frame.window_start, frame.window_end) == (pytest.approx(8.5), pytest.approx(18.5))
    assert frame.playhead == 150.0
    assert frame.synced

    piano, bass, later = frame.notes
    assert piano.active and not piano.dimmed
    assert piano.annotations == (AnnotationType.GLOW,)
    assert bass.dimmed and bass.active
    assert bass.annotations == (AnnotationType.GLOW,)
    assert not later.active
    assert later.annotations == ()
    assert [n.note for n in frame.active_notes] == [NOTES[0], NOTES[1]]


def test_markers_inside_window_only(mapper):
    view = ViewState.scroll(TRACKS, width=1000, height=400)
    frame = resolve_frame(10.0, PlaybackMode.SYMBOLIC, mapper, NOTES, [], view)

    assert [m.point.id for m in frame.markers] == ["sp-b"]
    assert frame.markers[0].position == pytest.approx(150.0)


def test_grid_every_half_second_in_scroll_mode(mapper):
    view = ViewState.scroll(TRACKS, width=1000, height=400)
    frame = resolve_frame(10.0, PlaybackMode.SYMBOLIC, mapper, NOTES, [], view)

    assert len(frame.grid) == 20
    assert frame.grid[0] == pytest.approx(0.0)
    assert frame.grid[1] - frame.grid[0] == pytest.approx(50.0)


def test_no_grid_in_cinema_mode(mapper):
    view = ViewState.cinema(TRACKS, width=400, height=800)
    frame = resolve_frame(10.0, PlaybackMode.SYMBOLIC, mapper, NOTES, [], view)
    assert frame.grid == ()
    assert frame.playhead == 400.0


def test_unsynced_frame_uses_clock_directly():
    mapper = TimelineMapper(AnchorStore())
    view = ViewState.scroll(TRACKS, width=1000, height=400)
    frame = resolve_frame(10.0, PlaybackMode.PERFORMANCE, mapper, NOTES, [], view)
    assert frame.instant == 10.0
    assert not frame.synced
    assert frame.markers == ()


def test_grid_lines_with_bad_interval():
    view = ViewState.scroll(TRACKS, width=1000, height=400)
    viewport = resolve_viewport(NOTES, 10.0, view)
    assert grid_lines(viewport, view, interval=0) == ()


@pytest.mark.parametrize("ups", [0.0, 1e-6, float("nan")])
def test_degenerate_zoom_still_resolves(ups):
    mapper = TimelineMapper(AnchorStore())
    view = ViewState.scroll([Track(0, "A")], 1000, 400, units_per_second=ups)
    assert view.units_per_second == 1.0

    frame = resolve_frame(1.0, PlaybackMode.SYMBOLIC, mapper, [Note(60, 0, 1)], [], view)
    assert (frame.window_start, frame.window_end) == (pytest.approx(-149.0), pytest.approx(851.0))
    assert len(frame.notes) == 1
    assert frame.grid == ()


def test_grid_skipped_when_denser_than_the_axis():
    view = ViewState.scroll(TRACKS, width=100, height=400, units_per_second=1.5, playhead_offset=0)
    viewport = resolve_viewport(NOTES, 0.0, view)
    assert grid_lines(viewport, view) == ()
    assert len(grid_lines(viewport, view, interval=1.0)) == 67
