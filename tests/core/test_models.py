import pytest

from core.constants import (
    format_time, get_track_color, gm_family_name, hex_to_rgba, midi_note_to_name, title_from_id,
)
from core.models import (
    AnnotationScope, AnnotationType, Note, PlaybackMode, ScoreConfig, SessionState, SyncPoint, Track,
)


def test_note_names():
    assert midi_note_to_name(60) == "C4"
    assert midi_note_to_name(70) == "A#4"


def test_palette_and_colors():
    assert get_track_color(0) == get_track_color(8) == "#3B82F6"
    assert hex_to_rgba("#10B981", 128) == (16, 185, 129, 128)
    assert hex_to_rgba("nope") == (102, 102, 102, 255)
    assert gm_family_name(33) == "Bass"
    assert gm_family_name(200) == "Unknown"


def test_time_formatting():
    assert format_time(65.25) == "1:05.25"
    assert format_time(-3) == "0:00.00"
    assert title_from_id("bach_846") == "Bach 846"


def test_title_capitalizes_after_hyphens():
    assert title_from_id("a-b") == "A-B"
    assert title_from_id("clair-de-lune_no_3") == "Clair-De-Lune No 3"


def test_note_validation():
    with pytest.raises(ValueError):
        Note(pitch=128, start=0, duration=1)
    with pytest.raises(ValueError):
        Note(pitch=60, start=0, duration=0)
    with pytest.raises(ValueError):
        Note(pitch=60, start=0, duration=1, velocity=1.5)

    note = Note.from_dict({"midi": 61, "time": 2.0, "duration": 0.5, "velocity": 0.5, "track": 1})
    assert (note.pitch, note.start, note.end, note.name) == (61, 2.0, 2.5, "C#4")


def test_track_gets_palette_color():
    assert Track(2, "Horn").color == "#F59E0B"
    assert Track(2, "Horn", color="#000000").color == "#000000"
    assert Track.from_dict({"name": "Cello"}, index=3).id == 3


def test_sync_point_rejects_negative_times():
    with pytest.raises(ValueError):
        SyncPoint("sp-1", -1.0, 0.0)


def test_annotation_enums():
    assert AnnotationScope.parse("section") is AnnotationScope.RANGE
    assert AnnotationType.TREMOLO.label == "Tremolo"
    assert len(AnnotationType) == 8


def test_session_state_playback():
    session = SessionState(ScoreConfig.create_empty("demo"),
                           notes=(Note(pitch=60, start=1.0, duration=2.0),))
    assert session.duration == 3.0
    assert session.get_playback_mode() is PlaybackMode.PERFORMANCE

    session.set_playback_position(-4.0)
    assert session.get_playback_position() == 0.0

    session.set_playback_position(2.0)
    session.set_playback_mode("symbolic")
    assert session.get_playback_mode() is PlaybackMode.SYMBOLIC
    assert session.get_playback_position() == 0.0
    assert not session.is_dirty()
