"""
Standard MIDI File import for the symbolic timeline.

Produces notes in seconds (using the file's tempo map) plus a track
roster. Tracks without notes are skipped; colors are assigned by roster
index from the track palette.
"""
import io
import logging
from bisect import bisect_right
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Sequence, Tuple, Union

import mido

from core.constants import DEFAULT_BPM, DEFAULT_TIME_SIGNATURE, get_track_color, gm_family_name
from core.models import Note, Track

logger = logging.getLogger(__name__)

DEFAULT_TEMPO = mido.bpm2tempo(DEFAULT_BPM)
MIN_NOTE_DURATION = 1e-3  # seconds; zero-length notes are widened to this
PERCUSSION_CHANNEL = 9


@dataclass(frozen=True)
class ParsedScore:
    """Result of parsing a MIDI file."""
    notes: Tuple[Note, ...]
    tracks: Tuple[Track, ...]
    duration: float
    name: str
    bpm: int = DEFAULT_BPM
    time_signature: Tuple[int, int] = DEFAULT_TIME_SIGNATURE
    skipped_tracks: Tuple[int, ...] = field(default_factory=tuple)


class TempoMap:
    """Converts absolute ticks to seconds across tempo changes."""

    def __init__(self, ticks_per_beat: int, changes: Sequence[Tuple[int, int]]):
        """
        Args:
            ticks_per_beat: File resolution
            changes: (absolute_tick, tempo_us_per_beat) pairs
        """
        self.ticks_per_beat = ticks_per_beat
        ordered = sorted(changes, key=lambda c: c[0])
        if not ordered or ordered[0][0] != 0:
            ordered.insert(0, (0, DEFAULT_TEMPO))

        self._ticks: List[int] = []
        self._tempos: List[int] = []
        self._seconds: List[float] = []
        elapsed = 0.0
        for tick, tempo in ordered:
            if self._ticks:
                if tick == self._ticks[-1]:
                    # Later change at the same tick wins
                    self._tempos[-1] = tempo
                    continue
                elapsed += mido.tick2second(tick - self._ticks[-1], ticks_per_beat, self._tempos[-1])
            self._ticks.append(tick)
            self._tempos.append(tempo)
            self._seconds.append(elapsed)

    @property
    def first_tempo(self) -> int:
        return self._tempos[0]

    def seconds(self, tick: int) -> float:
        i = bisect_right(self._ticks, tick) - 1
        return self._seconds[i] + mido.tick2second(tick - self._ticks[i], self.ticks_per_beat, self._tempos[i])


class MidiLoader:
    """Handles MIDI file import."""

    @classmethod
    def load(cls, path: Union[str, Path]) -> ParsedScore:
        """
        Parse a .mid file from disk.

        Raises:
            IOError: If the file cannot be read or parsed
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise IOError(f"Failed to load MIDI file {path}: {e}") from e
        return cls.load_bytes(data, name=path.stem)

    @classmethod
    def load_bytes(cls, data: bytes, name: str = "Untitled") -> ParsedScore:
        """
        Parse MIDI file bytes (uploads, network fetches).

        Raises:
            IOError: If the bytes are not a valid MIDI file
        """
        try:
            mid = mido.MidiFile(file=io.BytesIO(data))
        except (OSError, EOFError, ValueError, KeyError) as e:
            raise IOError(f"Failed to parse MIDI data: {e}") from e
        return cls.parse(mid, name=name)

    @classmethod
    def parse(cls, mid: mido.MidiFile, name: str = "Untitled") -> ParsedScore:
        """Convert a loaded mido.MidiFile to notes and tracks."""
        tempo_changes = []
        time_signature = None
        for midi_track in mid.tracks:
            tick = 0
            for msg in midi_track:
                tick += msg.time
                if msg.type == "set_tempo":
                    tempo_changes.append((tick, msg.tempo))
                elif msg.type == "time_signature" and time_signature is None:
                    time_signature = (msg.numerator, msg.denominator)
        tempo_map = TempoMap(mid.ticks_per_beat, tempo_changes)

        notes: List[Note] = []
        tracks: List[Track] = []
        skipped: List[int] = []
        last_tick = 0

        for track_idx, midi_track in enumerate(mid.tracks):
            track_id = len(tracks)
            track_notes, end_tick, program, channel = cls._collect_notes(midi_track, tempo_map, track_id)
            last_tick = max(last_tick, end_tick)

            if not track_notes:
                skipped.append(track_idx)
                continue

            if channel == PERCUSSION_CHANNEL:
                instrument = "Drums"
            elif program is not None:
                instrument = gm_family_name(program)
            else:
                instrument = "Unknown"

            tracks.append(Track(
                id=track_id,
                name=midi_track.name or f"Track {track_id + 1}",
                color=get_track_color(track_id),
                instrument=instrument,
                note_count=len(track_notes),
            ))
            notes.extend(track_notes)

        # Stable: simultaneous notes keep track order
        notes.sort(key=lambda n: n.start)

        duration = max(tempo_map.seconds(last_tick), max((n.end for n in notes), default=0.0))
        bpm = round(mido.tempo2bpm(tempo_map.first_tempo)) if tempo_changes else DEFAULT_BPM

        logger.info("Parsed %s: %d notes on %d tracks (%.1fs)", name, len(notes), len(tracks), duration)

        return ParsedScore(
            notes=tuple(notes),
            tracks=tuple(tracks),
            duration=duration,
            name=name,
            bpm=bpm,
            time_signature=time_signature or DEFAULT_TIME_SIGNATURE,
            skipped_tracks=tuple(skipped),
        )

    @staticmethod
    def _collect_notes(midi_track: mido.MidiTrack, tempo_map: TempoMap, track_id: int):
        """Pair note-on/note-off messages (first on, first off per channel and pitch)."""
        notes: List[Note] = []
        active: Dict[Tuple[int, int], List[Tuple[int, int]]] = {}
        program = None
        channel = None
        tick = 0

        for msg in midi_track:
            tick += msg.time

            if msg.type == "program_change" and program is None:
                program = msg.program

            elif msg.type == "note_on" and msg.velocity > 0:
                active.setdefault((msg.channel, msg.note), []).append((tick, msg.velocity))
                if channel is None:
                    channel = msg.channel

            elif msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0):
                pending = active.get((msg.channel, msg.note))
                if pending:
                    start_tick, velocity = pending.pop(0)
                    notes.append(_make_note(msg.note, start_tick, tick, velocity, tempo_map, track_id))

        # Close notes that never received a note-off at the end of the track
        for (_, pitch), pending in active.items():
            for start_tick, velocity in pending:
                notes.append(_make_note(pitch, start_tick, tick, velocity, tempo_map, track_id))

        return notes, tick, program, channel


def _make_note(pitch: int, start_tick: int, end_tick: int, velocity: int,
               tempo_map: TempoMap, track_id: int) -> Note:
    start = tempo_map.seconds(start_tick)
    duration = max(tempo_map.seconds(end_tick) - start, MIN_NOTE_DURATION)
    return Note(
        pitch=pitch,
        start=start,
        duration=duration,
        velocity=min(velocity / 127.0, 1.0),
        track=track_id,
    )


def merge_track_settings(parsed: Sequence[Track], saved: Sequence[Track]) -> Tuple[Track, ...]:
    """
    Restore saved visible/muted/solo flags onto a freshly parsed roster.

    Settings are matched by roster position; tracks without a saved entry
    keep their defaults.
    """
    merged = []
    for i, track in enumerate(parsed):
        if i < len(saved):
            s = saved[i]
            track = replace(track, visible=s.visible, muted=s.muted, solo=s.solo)
        merged.append(track)
    return tuple(merged)
