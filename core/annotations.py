"""
Annotation resolution and per-note display state.

The resolver treats annotation types purely as data: it reports which
types apply to a note and leaves drawing to the renderer. Malformed
annotations (inverted ranges, allow-lists naming unknown tracks) simply
match nothing.
"""
from typing import Iterable, List, Optional, Sequence, Tuple

from core.anchors import generate_annotation_id
from core.models import Annotation, AnnotationScope, AnnotationType, Note, Track


def overlaps(annotation: Annotation, note: Note) -> bool:
    """Strict overlap of the annotation range with [note.start, note.end)."""
    return annotation.start_time < note.end and annotation.end_time > note.start


def applies_to(annotation: Annotation, note: Note) -> bool:
    """
    Check whether an annotation applies to a note.

    Requires time overlap and a scope match: a track annotation matches
    only its own track; a range annotation matches every track unless it
    carries an allow-list.
    """
    if not overlaps(annotation, note):
        return False
    if annotation.scope is AnnotationScope.TRACK:
        return annotation.track_id == note.track
    if annotation.applicable_tracks is None:
        return True
    return note.track in annotation.applicable_tracks


def resolve(note: Note, annotations: Iterable[Annotation]) -> Tuple[AnnotationType, ...]:
    """
    All annotation types active on a note.

    Duplicates are kept and annotation order is preserved; each entry is
    rendered separately.
    """
    return tuple(a.type for a in annotations if applies_to(a, note))


def is_dimmed(track_id: int, tracks: Sequence[Track]) -> bool:
    """
    Muted, or some track is soloed and this one is not.

    Unknown tracks count as neither muted nor soloed.
    """
    any_solo = any(t.solo for t in tracks)
    for track in tracks:
        if track.id == track_id:
            return track.muted or (any_solo and not track.solo)
    return any_solo


def should_track_play(track_id: int, tracks: Sequence[Track]) -> bool:
    """Audible under the current mute/solo state (unknown tracks never play)."""
    if not any(t.id == track_id for t in tracks):
        return False
    return not is_dimmed(track_id, tracks)


def is_active(note: Note, instant: float) -> bool:
    """Sounding at the instant: start <= instant < end."""
    return note.start <= instant < note.end


def visible_notes(notes: Iterable[Note], tracks: Sequence[Track]) -> List[Note]:
    """Notes on tracks that are shown at all."""
    shown = {t.id for t in tracks if t.visible}
    return [n for n in notes if n.track in shown]


def playable_notes(notes: Iterable[Note], tracks: Sequence[Track]) -> List[Note]:
    """Notes on tracks that are audible under mute/solo."""
    return [n for n in notes if should_track_play(n.track, tracks)]


def annotation_for_selection(annotation_type: AnnotationType, selection: Sequence[Note],
                             applicable_tracks: Optional[Iterable[int]] = None) -> Optional[Annotation]:
    """
    Range annotation spanning a group of selected notes.

    Returns:
        The annotation, or None for an empty selection
    """
    if not selection:
        return None
    return Annotation(
        id=generate_annotation_id(),
        type=annotation_type,
        scope=AnnotationScope.RANGE,
        start_time=min(n.start for n in selection),
        end_time=max(n.end for n in selection),
        applicable_tracks=tuple(applicable_tracks) if applicable_tracks is not None else None,
    )


def annotation_for_track(annotation_type: AnnotationType, track_id: int,
                         duration: float) -> Annotation:
    """Track annotation covering the whole piece."""
    return Annotation(
        id=generate_annotation_id(),
        type=annotation_type,
        scope=AnnotationScope.TRACK,
        start_time=0.0,
        end_time=duration,
        track_id=track_id,
    )
