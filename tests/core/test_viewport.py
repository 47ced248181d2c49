import pytest

from core.models import Note, Track
from core.viewport import (
    PitchRange, PresentationMode, ViewState, in_window, observed_pitch_range,
    resolve_viewport, track_pitch_ranges,
)


def window_view(tracks, **kwargs):
    """Scroll view whose window at instant t is [t, t + 1)."""
    return ViewState(tracks=tuple(tracks), units_per_second=100.0, extent=100.0,
                     playhead_offset=0.0, **kwargs)


TRACKS = (Track(0, "Piano"), Track(1, "Bass"))


def test_note_overlapping_window_start_is_included():
    note = Note(pitch=60, start=9.9, duration=0.3)
    viewport = resolve_viewport([note], 10.0, window_view(TRACKS))

    assert (viewport.window_start, viewport.window_end) == (10.0, 11.0)
    assert [p.note for p in viewport.notes] == [note]
    assert viewport.notes[0].placement.position == pytest.approx(-10.0)


def test_window_edges_are_half_open():
    ends_at_start = Note(pitch=60, start=9.0, duration=1.0)
    starts_at_end = Note(pitch=60, start=11.0, duration=0.5)
    viewport = resolve_viewport([ends_at_start, starts_at_end], 10.0, window_view(TRACKS))
    assert viewport.notes == ()


def test_invisible_tracks_are_excluded():
    tracks = (Track(0, "Piano"), Track(1, "Bass", visible=False))
    shown = Note(pitch=60, start=10.0, duration=0.5, track=0)
    hidden = Note(pitch=30, start=10.0, duration=0.5, track=1)
    viewport = resolve_viewport([shown, hidden], 10.0, window_view(tracks))

    assert [p.note for p in viewport.notes] == [shown]
    assert viewport.pitch_range == PitchRange(58, 62)


def test_unknown_track_notes_are_excluded():
    stray = Note(pitch=60, start=10.0, duration=0.5, track=9)
    assert resolve_viewport([stray], 10.0, window_view(TRACKS)).notes == ()


def test_muted_notes_are_still_returned():
    tracks = (Track(0, "Piano", muted=True),)
    note = Note(pitch=60, start=10.0, duration=0.5)
    assert len(resolve_viewport([note], 10.0, window_view(tracks)).notes) == 1


def test_pitch_placement_uses_observed_range():
    low = Note(pitch=60, start=10.0, duration=0.5)
    high = Note(pitch=64, start=10.2, duration=0.5)
    view = window_view(TRACKS, cross_extent=400.0, cross_margin=20.0)
    viewport = resolve_viewport([low, high], 10.0, view)

    assert viewport.pitch_range == PitchRange(58, 66)
    low_cross, high_cross = (p.placement.cross for p in viewport.notes)
    assert low_cross == pytest.approx(290.0)
    assert high_cross == pytest.approx(110.0)


def test_single_pitch_does_not_divide_by_zero():
    assert PitchRange(60, 60).span == 1.0
    note = Note(pitch=60, start=10.0, duration=0.5)
    viewport = resolve_viewport([note], 10.0, window_view(TRACKS))
    assert viewport.notes[0].placement.cross == pytest.approx(200.0)


def test_minimum_length_floor():
    short = Note(pitch=60, start=10.0, duration=0.001)
    viewport = resolve_viewport([short], 10.0, window_view(TRACKS))
    assert viewport.notes[0].placement.length == 2.0


def test_resolution_is_deterministic_and_pure():
    notes = [Note(pitch=60 + i, start=10.0 + i * 0.1, duration=0.2, track=i % 2) for i in range(8)]
    tracks = tuple(TRACKS)
    before = (list(notes), tracks)

    first = resolve_viewport(notes, 10.3, window_view(tracks))
    second = resolve_viewport(notes, 10.3, window_view(tracks))

    assert first == second
    assert (notes, tracks) == before


def test_scroll_defaults():
    view = ViewState.scroll(TRACKS, width=1000, height=400)
    assert view.window(10.0) == (pytest.approx(8.5), pytest.approx(18.5))
    assert view.direction == 1.0


def test_cinema_lanes():
    notes = [
        Note(pitch=60, start=11.0, duration=0.5, track=0),
        Note(pitch=70, start=11.0, duration=0.5, track=1),
    ]
    view = ViewState.cinema(TRACKS, width=200, height=800, seconds_visible=8)
    assert view.mode is PresentationMode.CINEMA
    assert view.window(10.0) == (pytest.approx(6.0), pytest.approx(14.0))

    viewport = resolve_viewport(notes, 10.0, view)
    piano, bass = (p.placement for p in viewport.notes)

    # Future notes sit above the centred playhead
    assert piano.position == pytest.approx(300.0)
    assert piano.length == pytest.approx(50.0)
    assert (piano.lane, bass.lane) == (0, 1)
    assert piano.cross == pytest.approx(50.0)
    assert bass.cross == pytest.approx(150.0)
    assert piano.cross_size == 8.0


def test_cinema_can_hide_dimmed_tracks():
    tracks = (Track(0, "Piano", solo=True), Track(1, "Bass"))
    notes = [Note(pitch=60, start=10.0, duration=1.0, track=t) for t in (0, 1)]

    shown = resolve_viewport(notes, 10.0, ViewState.cinema(tracks, 200, 800))
    hidden = resolve_viewport(notes, 10.0, ViewState.cinema(tracks, 200, 800, hide_dimmed=True))

    assert len(shown.notes) == 2
    assert [p.note.track for p in hidden.notes] == [0]


def test_empty_track_gets_default_range():
    ranges = track_pitch_ranges([Note(pitch=40, start=0, duration=1)], TRACKS)
    assert ranges[0] == PitchRange(38, 42)
    assert ranges[1] == PitchRange(60, 72)


def test_in_window_mask():
    notes = [Note(pitch=60, start=s, duration=1.0) for s in (0.0, 4.5, 9.0)]
    assert list(in_window(notes, 5.0, 9.0)) == [False, True, False]
    assert in_window([], 0.0, 1.0).size == 0
    assert observed_pitch_range([]) is None
