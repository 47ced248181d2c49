import pytest

from core.annotations import (
    annotation_for_selection, annotation_for_track, applies_to, is_active, is_dimmed,
    playable_notes, resolve, should_track_play, visible_notes,
)
from core.models import Annotation, AnnotationScope, AnnotationType, Note, Track


def range_annotation(start, end, kind=AnnotationType.GLOW, tracks=None, annotation_id="ad-1"):
    return Annotation(annotation_id, kind, AnnotationScope.RANGE, start, end, applicable_tracks=tracks)


def track_annotation(track_id, start, end, kind=AnnotationType.WAVY, annotation_id="ad-2"):
    return Annotation(annotation_id, kind, AnnotationScope.TRACK, start, end, track_id=track_id)


def test_range_without_allow_list_applies_to_every_track():
    annotation = range_annotation(0, 10)
    for track in range(4):
        assert resolve(Note(pitch=60, start=5, duration=1, track=track), [annotation]) == (AnnotationType.GLOW,)


def test_overlap_is_strict():
    annotation = range_annotation(0, 10)
    assert not applies_to(annotation, Note(pitch=60, start=10, duration=1))
    assert not applies_to(range_annotation(2, 10), Note(pitch=60, start=1, duration=1))
    assert applies_to(annotation, Note(pitch=60, start=9.5, duration=1))
    # Partial overlap is enough, containment is not required
    assert applies_to(range_annotation(2, 3), Note(pitch=60, start=2.5, duration=4))


def test_track_annotation_only_matches_its_track():
    annotation = track_annotation(1, 0, 10)
    assert resolve(Note(pitch=60, start=1, duration=1, track=1), [annotation]) == (AnnotationType.WAVY,)
    assert resolve(Note(pitch=60, start=1, duration=1, track=0), [annotation]) == ()


def test_allow_list_restricts_range_annotation():
    annotation = range_annotation(0, 10, tracks=(0, 2))
    assert applies_to(annotation, Note(pitch=60, start=1, duration=1, track=2))
    assert not applies_to(annotation, Note(pitch=60, start=1, duration=1, track=1))


def test_allow_list_with_unknown_tracks_matches_nothing():
    annotation = range_annotation(0, 10, tracks=(42,))
    assert resolve(Note(pitch=60, start=1, duration=1), [annotation]) == ()


def test_inverted_range_matches_nothing():
    annotation = range_annotation(8, 2)
    assert resolve(Note(pitch=60, start=3, duration=1), [annotation]) == ()


def test_duplicate_types_are_kept_in_order():
    annotations = [
        range_annotation(0, 10, AnnotationType.SPARK, annotation_id="a"),
        track_annotation(0, 0, 10, AnnotationType.PUNCH, annotation_id="b"),
        range_annotation(0, 10, AnnotationType.SPARK, annotation_id="c"),
    ]
    note = Note(pitch=60, start=2, duration=1)
    assert resolve(note, annotations) == (AnnotationType.SPARK, AnnotationType.PUNCH, AnnotationType.SPARK)


def test_muted_track_is_dimmed():
    tracks = (Track(0, "A", muted=True), Track(1, "B"))
    assert is_dimmed(0, tracks)
    assert not is_dimmed(1, tracks)


def test_solo_dims_everything_else():
    tracks = (Track(0, "A", solo=True), Track(1, "B"), Track(2, "C", solo=True))
    assert [is_dimmed(t.id, tracks) for t in tracks] == [False, True, False]


def test_muted_and_soloed_track_is_dimmed():
    tracks = (Track(0, "A", solo=True, muted=True), Track(1, "B"))
    assert is_dimmed(0, tracks)


def test_unknown_track_dimming():
    assert not is_dimmed(5, (Track(0, "A"),))
    assert is_dimmed(5, (Track(0, "A", solo=True),))
    assert not should_track_play(5, (Track(0, "A"),))


def test_active_is_half_open():
    note = Note(pitch=60, start=2.0, duration=1.0)
    assert is_active(note, 2.0)
    assert is_active(note, 2.999)
    assert not is_active(note, 3.0)
    assert not is_active(note, 1.999)


def test_visible_and_playable_notes():
    tracks = (Track(0, "A"), Track(1, "B", visible=False), Track(2, "C", muted=True))
    notes = [Note(pitch=60, start=0, duration=1, track=t) for t in (0, 1, 2)]
    assert [n.track for n in visible_notes(notes, tracks)] == [0, 2]
    assert [n.track for n in playable_notes(notes, tracks)] == [0, 1]


def test_annotation_for_selection_spans_the_group():
    selection = [Note(pitch=60, start=4, duration=2), Note(pitch=62, start=1, duration=1)]
    annotation = annotation_for_selection(AnnotationType.PHRASE, selection, applicable_tracks=[0])

    assert annotation.scope is AnnotationScope.RANGE
    assert (annotation.start_time, annotation.end_time) == (1, 6)
    assert annotation.applicable_tracks == (0,)
    assert annotation.id.startswith("ad-")
    assert annotation.label == "Phrase"
    assert annotation_for_selection(AnnotationType.PHRASE, []) is None


def test_annotation_for_track_covers_the_piece():
    annotation = annotation_for_track(AnnotationType.LEGATO, 3, 120.0)
    assert annotation.scope is AnnotationScope.TRACK
    assert annotation.track_id == 3
    assert (annotation.start_time, annotation.end_time) == (0.0, 120.0)


def test_annotation_shape_is_validated():
    with pytest.raises(ValueError):
        Annotation("x", AnnotationType.GLOW, AnnotationScope.TRACK, 0, 1)
    with pytest.raises(ValueError):
        Annotation("x", AnnotationType.GLOW, AnnotationScope.RANGE, 0, 1, track_id=0)
