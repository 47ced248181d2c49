"""
Immutable data models for ScoreSync.

All records are frozen dataclasses to support:
- Easy undo/redo via command pattern
- Safe sharing of per-frame snapshots between the pipeline and the UI
- Wholesale serialization of the persisted score configuration
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Tuple, Optional, Dict, Any

from core.constants import midi_note_to_name, get_track_color, title_from_id

CONFIG_VERSION = "1.0.0"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Note:
    """
    Symbolic note event.

    Times are seconds on the symbolic (MIDI) timeline.

    Attributes:
        pitch: MIDI note number (0-127)
        start: Start time in seconds
        duration: Duration in seconds
        velocity: Normalized velocity (0.0-1.0)
        track: Index of the owning track in the roster
    """
    pitch: int
    start: float
    duration: float
    velocity: float = 0.8
    track: int = 0

    def __post_init__(self):
        """Validate note values."""
        if not 0 <= self.pitch <= 127:
            raise ValueError(f"Pitch must be 0-127, got {self.pitch}")
        if self.start < 0:
            raise ValueError(f"Start must be non-negative, got {self.start}")
        if self.duration <= 0:
            raise ValueError(f"Duration must be positive, got {self.duration}")
        if not 0.0 <= self.velocity <= 1.0:
            raise ValueError(f"Velocity must be 0.0-1.0, got {self.velocity}")
        if self.track < 0:
            raise ValueError(f"Track must be non-negative, got {self.track}")

    @property
    def end(self) -> float:
        return self.start + self.duration

    @property
    def name(self) -> str:
        return midi_note_to_name(self.pitch)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "pitch": self.pitch,
            "start": self.start,
            "duration": self.duration,
            "velocity": self.velocity,
            "track": self.track,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        """Create Note from dictionary."""
        return cls(
            pitch=data.get("pitch", data.get("midi")),
            start=data.get("start", data.get("time")),
            duration=data["duration"],
            velocity=data.get("velocity", 0.8),
            track=data.get("track", 0),
        )


@dataclass(frozen=True)
class Track:
    """
    Track roster entry plus its user-driven display flags.

    Attributes:
        id: Roster index (matches Note.track)
        name: Track name
        color: "#RRGGBB" color from the track palette
        instrument: Instrument name reported by the parser
        note_count: Number of notes on the track
        visible: Excluded entirely from the viewport when False
        muted: Drawn dimmed when True
        solo: When any track is soloed, only soloed tracks are undimmed
    """
    id: int
    name: str
    color: str = ""
    instrument: str = "Unknown"
    note_count: int = 0
    visible: bool = True
    muted: bool = False
    solo: bool = False

    def __post_init__(self):
        """Validate track and fill in the palette color."""
        if self.id < 0:
            raise ValueError(f"Track id must be non-negative, got {self.id}")
        if not self.color:
            # Use object.__setattr__ to modify frozen dataclass during init
            object.__setattr__(self, "color", get_track_color(self.id))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "instrument": self.instrument,
            "note_count": self.note_count,
            "visible": self.visible,
            "muted": self.muted,
            "solo": self.solo,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "Track":
        """Create Track from dictionary (index is used when the record has no id)."""
        return cls(
            id=data.get("id", index),
            name=data.get("name", f"Track {index + 1}"),
            color=data.get("color", ""),
            instrument=data.get("instrument", "Unknown"),
            note_count=data.get("note_count", data.get("noteCount", 0)),
            visible=data.get("visible", True),
            muted=data.get("muted", False),
            solo=data.get("solo", False),
        )


@dataclass(frozen=True)
class SyncPoint:
    """
    Anchor pairing an instant on each timeline.

    Attributes:
        id: Unique id ("sp-...")
        symbolic_time: Position on the symbolic timeline (seconds)
        performance_time: Position on the performance timeline (seconds)
        label: Display label
    """
    id: str
    symbolic_time: float
    performance_time: float
    label: str = ""

    def __post_init__(self):
        """Validate sync point."""
        if self.symbolic_time < 0:
            raise ValueError(f"Symbolic time must be non-negative, got {self.symbolic_time}")
        if self.performance_time < 0:
            raise ValueError(f"Performance time must be non-negative, got {self.performance_time}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "symbolic_time": self.symbolic_time,
            "performance_time": self.performance_time,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncPoint":
        """Create SyncPoint from dictionary (accepts midiTime/audioTime keys)."""
        return cls(
            id=data["id"],
            symbolic_time=data.get("symbolic_time", data.get("midiTime")),
            performance_time=data.get("performance_time", data.get("audioTime")),
            label=data.get("label", ""),
        )


class AnnotationType(Enum):
    """Closed set of visual effect kinds."""
    WAVY = "wavy"        # Melodic runs - flowing wave
    SPARK = "spark"      # Syncopation - sparkle burst
    PUNCH = "punch"      # Strong accents - bold impact
    GLOW = "glow"        # Sustained notes - halo
    PHRASE = "phrase"    # Section markers - bracket overlay
    ACCENT = "accent"    # Single note emphasis - highlight
    TREMOLO = "tremolo"  # Rapid repetition - vibration
    LEGATO = "legato"    # Smooth connection - curved lines

    @property
    def label(self) -> str:
        return self.value.capitalize()


class AnnotationScope(Enum):
    TRACK = "track"
    RANGE = "range"

    @classmethod
    def parse(cls, value: Any) -> "AnnotationScope":
        if isinstance(value, cls):
            return value
        # Older configs call range scope "section"
        if value == "section":
            return cls.RANGE
        return cls(value)


@dataclass(frozen=True)
class Annotation:
    """
    Visual embellishment over a symbolic time range.

    Attributes:
        id: Unique id ("ad-...")
        type: Effect kind
        scope: TRACK (one track) or RANGE (all tracks, or an allow-list)
        start_time: Range start on the symbolic timeline
        end_time: Range end on the symbolic timeline
        track_id: Target track, present iff scope is TRACK
        applicable_tracks: Optional allow-list for RANGE scope
        label: Display label (defaults to the type label)
    """
    id: str
    type: AnnotationType
    scope: AnnotationScope
    start_time: float
    end_time: float
    track_id: Optional[int] = None
    applicable_tracks: Optional[Tuple[int, ...]] = None
    label: str = ""

    def __post_init__(self):
        """Validate annotation shape and coerce enum values."""
        object.__setattr__(self, "type", AnnotationType(self.type))
        object.__setattr__(self, "scope", AnnotationScope.parse(self.scope))

        if self.scope is AnnotationScope.TRACK:
            if self.track_id is None:
                raise ValueError("Track-scoped annotation requires track_id")
            if self.applicable_tracks is not None:
                raise ValueError("Track-scoped annotation cannot have applicable_tracks")
        elif self.track_id is not None:
            raise ValueError("Range-scoped annotation cannot have track_id")

        if self.applicable_tracks is not None:
            object.__setattr__(self, "applicable_tracks", tuple(self.applicable_tracks))
        if not self.label:
            object.__setattr__(self, "label", self.type.label)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        result = {
            "id": self.id,
            "type": self.type.value,
            "scope": self.scope.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "label": self.label,
        }
        if self.track_id is not None:
            result["track_id"] = self.track_id
        if self.applicable_tracks is not None:
            result["applicable_tracks"] = list(self.applicable_tracks)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Annotation":
        """Create Annotation from dictionary (accepts the older adornment keys)."""
        scope = AnnotationScope.parse(data["scope"])
        track_id = data.get("track_id", data.get("trackIndex"))
        if scope is AnnotationScope.RANGE:
            # Older configs may carry a stray trackIndex on section scope
            track_id = None
        applicable = data.get("applicable_tracks", data.get("applicableTracks"))
        return cls(
            id=data["id"],
            type=AnnotationType(data["type"]),
            scope=scope,
            start_time=data.get("start_time", data.get("startTime")),
            end_time=data.get("end_time", data.get("endTime")),
            track_id=track_id,
            applicable_tracks=tuple(applicable) if applicable is not None else None,
            label=data.get("label", ""),
        )


@dataclass(frozen=True)
class ScoreConfig:
    """
    Persisted configuration for one catalog entry.

    Read and written wholesale by the config store.

    Attributes:
        id: Catalog identifier (folder name)
        title: Display title
        symbolic_file: MIDI file name
        performance_file: Audio file name
        sync_points: Anchors
        tracks: Track settings
        annotations: Annotation library
        created_at: ISO timestamp
        updated_at: ISO timestamp
    """
    id: str
    title: str
    symbolic_file: str
    performance_file: str
    sync_points: Tuple[SyncPoint, ...] = field(default_factory=tuple)
    tracks: Tuple[Track, ...] = field(default_factory=tuple)
    annotations: Tuple[Annotation, ...] = field(default_factory=tuple)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def create_empty(cls, song_id: str) -> "ScoreConfig":
        """Config for an id that has never been saved."""
        return cls(
            id=song_id,
            title=title_from_id(song_id),
            symbolic_file=f"{song_id}.mid",
            performance_file=f"{song_id}.mp3",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "version": CONFIG_VERSION,
            "id": self.id,
            "title": self.title,
            "symbolic_file": self.symbolic_file,
            "performance_file": self.performance_file,
            "sync_points": [p.to_dict() for p in self.sync_points],
            "tracks": [t.to_dict() for t in self.tracks],
            "annotations": [a.to_dict() for a in self.annotations],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoreConfig":
        """Create ScoreConfig from dictionary."""
        song_id = data["id"]
        empty = cls.create_empty(song_id)

        sync_points = tuple(
            SyncPoint.from_dict(p) for p in data.get("sync_points", data.get("syncPoints", []))
        )
        tracks = tuple(Track.from_dict(t, i) for i, t in enumerate(data.get("tracks", [])))
        annotations = tuple(
            Annotation.from_dict(a) for a in data.get("annotations", data.get("adornments", []))
        )

        return cls(
            id=song_id,
            title=data.get("title") or empty.title,
            symbolic_file=data.get("symbolic_file", data.get("midiFile")) or empty.symbolic_file,
            performance_file=data.get("performance_file", data.get("audioFile")) or empty.performance_file,
            sync_points=sync_points,
            tracks=tracks,
            annotations=annotations,
            created_at=data.get("created_at", data.get("createdAt")) or empty.created_at,
            updated_at=data.get("updated_at", data.get("updatedAt")) or empty.updated_at,
        )


class PlaybackMode(Enum):
    """Which transport drives the display."""
    PERFORMANCE = "performance"  # audio position, mapped through anchors
    SYMBOLIC = "symbolic"        # MIDI transport position, used directly


class SessionState:
    """
    In-memory editing surface for one loaded score.

    Manages:
    - Loaded notes and the track roster (with mutable display flags)
    - Anchor store and annotation library
    - Playback mode and position
    - Dirty flag for unsaved edits
    """

    def __init__(self, config: ScoreConfig, notes: Tuple[Note, ...] = (),
                 tracks: Tuple[Track, ...] = ()):
        """Initialize from a config and the parsed score."""
        from core.anchors import AnchorStore

        self.config = config
        self.notes: Tuple[Note, ...] = tuple(notes)
        self.anchors = AnchorStore(config.sync_points)
        self._tracks: Tuple[Track, ...] = tuple(tracks) or config.tracks
        self._annotations: Tuple[Annotation, ...] = config.annotations
        self._playback_mode = PlaybackMode.PERFORMANCE
        self._playback_position: float = 0.0
        self._is_dirty: bool = False

    @property
    def tracks(self) -> Tuple[Track, ...]:
        return self._tracks

    def set_tracks(self, tracks: Tuple[Track, ...]):
        self._tracks = tuple(tracks)

    def get_track(self, track_id: int) -> Optional[Track]:
        for track in self._tracks:
            if track.id == track_id:
                return track
        return None

    @property
    def annotations(self) -> Tuple[Annotation, ...]:
        return self._annotations

    def set_annotations(self, annotations: Tuple[Annotation, ...]):
        self._annotations = tuple(annotations)

    def get_playback_mode(self) -> PlaybackMode:
        return self._playback_mode

    def set_playback_mode(self, mode: PlaybackMode):
        """Switching transports resets the position."""
        self._playback_mode = PlaybackMode(mode)
        self._playback_position = 0.0

    def get_playback_position(self) -> float:
        """Current transport position in seconds of the active timeline."""
        return self._playback_position

    def set_playback_position(self, position: float):
        self._playback_position = max(0.0, position)

    @property
    def duration(self) -> float:
        """End of the last note on the symbolic timeline."""
        return max((n.end for n in self.notes), default=0.0)

    def is_dirty(self) -> bool:
        """Check if session has unsaved changes."""
        return self._is_dirty

    def mark_dirty(self):
        self._is_dirty = True

    def mark_clean(self):
        self._is_dirty = False

    def to_config(self) -> ScoreConfig:
        """Snapshot the editing surface into a persistable config."""
        return ScoreConfig(
            id=self.config.id,
            title=self.config.title,
            symbolic_file=self.config.symbolic_file,
            performance_file=self.config.performance_file,
            sync_points=self.anchors.snapshot(),
            tracks=self._tracks,
            annotations=self._annotations,
            created_at=self.config.created_at,
            updated_at=self.config.updated_at,
        )
