"""
Command pattern for undo/redo support.

All edits to the session (anchors, annotations, track flags) go through
commands so that:
- Every edit can be undone and redone
- Mutations land between frames, never during one
- A whole anchor drag collapses to a single history entry
"""
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Optional, List, Tuple

from core.models import Annotation, ScoreConfig, SessionState, SyncPoint, Track

TRACK_FLAGS = ("visible", "muted", "solo")


class Command(ABC):
    """Base class for all commands."""

    @abstractmethod
    def execute(self, state: SessionState) -> SessionState:
        """
        Execute command and return the updated state.

        Args:
            state: Current session state

        Returns:
            Session state after command execution
        """
        raise NotImplementedError()

    @abstractmethod
    def undo(self, state: SessionState) -> SessionState:
        """
        Undo command and return the restored state.

        Args:
            state: Current session state

        Returns:
            Session state before command execution
        """
        raise NotImplementedError()

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable command description for UI."""
        raise NotImplementedError()


class AddSyncPointCommand(Command):
    """Pair a selected symbolic instant with a selected performance instant."""

    def __init__(self, symbolic_time: float, performance_time: float,
                 label: Optional[str] = None):
        self.symbolic_time = symbolic_time
        self.performance_time = performance_time
        self.label = label
        self.point: Optional[SyncPoint] = None

    def execute(self, state: SessionState) -> SessionState:
        """Add the sync point (re-adds the same record on redo)."""
        if self.point is None:
            self.point = state.anchors.add(self.symbolic_time, self.performance_time, self.label)
        else:
            state.anchors.insert(self.point)
        state.mark_dirty()
        return state

    def undo(self, state: SessionState) -> SessionState:
        """Remove the added sync point."""
        if self.point is None:
            raise ValueError("Command has not been executed yet")
        state.anchors.remove(self.point.id)
        state.mark_dirty()
        return state

    @property
    def description(self) -> str:
        return "Add Sync Point"


class MoveSyncPointCommand(Command):
    """Adjust one or both coordinates of a sync point."""

    def __init__(self, point_id: str, symbolic_time: Optional[float] = None,
                 performance_time: Optional[float] = None,
                 previous: Optional[SyncPoint] = None):
        """
        Args:
            point_id: Sync point to move
            symbolic_time: New symbolic coordinate (unchanged if None)
            performance_time: New performance coordinate (unchanged if None)
            previous: Record before the move, when the move already happened
                (drag gestures write to the store as they go)
        """
        self.point_id = point_id
        self.symbolic_time = symbolic_time
        self.performance_time = performance_time
        self._previous = previous

    def execute(self, state: SessionState) -> SessionState:
        """Apply the new coordinates."""
        if self._previous is None:
            self._previous = state.anchors.get(self.point_id)
        state.anchors.move(self.point_id, self.symbolic_time, self.performance_time)
        state.mark_dirty()
        return state

    def undo(self, state: SessionState) -> SessionState:
        """Restore the previous coordinates."""
        if self._previous is None:
            raise ValueError("Command has not been executed yet")
        state.anchors.move(self.point_id, self._previous.symbolic_time,
                           self._previous.performance_time)
        state.mark_dirty()
        return state

    @property
    def description(self) -> str:
        return "Move Sync Point"


class DeleteSyncPointCommand(Command):
    """Delete one sync point."""

    def __init__(self, point_id: str):
        self.point_id = point_id
        self._removed: Optional[SyncPoint] = None
        self._previous_points: Tuple[SyncPoint, ...] = ()

    def execute(self, state: SessionState) -> SessionState:
        """Remove the sync point."""
        self._previous_points = state.anchors.snapshot()
        self._removed = state.anchors.remove(self.point_id)
        state.mark_dirty()
        return state

    def undo(self, state: SessionState) -> SessionState:
        """Restore the sync point at its original position in the store."""
        if self._removed is None:
            raise ValueError("Command has not been executed yet")
        state.anchors.replace_all(self._previous_points)
        state.mark_dirty()
        return state

    @property
    def description(self) -> str:
        return "Delete Sync Point"


class AddAnnotationCommand(Command):
    """Append an annotation to the library."""

    def __init__(self, annotation: Annotation):
        self.annotation = annotation
        self._previous: Optional[Tuple[Annotation, ...]] = None

    def execute(self, state: SessionState) -> SessionState:
        """Add the annotation."""
        self._previous = state.annotations
        state.set_annotations(state.annotations + (self.annotation,))
        state.mark_dirty()
        return state

    def undo(self, state: SessionState) -> SessionState:
        """Remove the added annotation."""
        if self._previous is None:
            raise ValueError("Command has not been executed yet")
        state.set_annotations(self._previous)
        state.mark_dirty()
        return state

    @property
    def description(self) -> str:
        return f"Add {self.annotation.type.label} Annotation"


class DeleteAnnotationCommand(Command):
    """Delete one annotation by id."""

    def __init__(self, annotation_id: str):
        self.annotation_id = annotation_id
        self._previous: Optional[Tuple[Annotation, ...]] = None

    def execute(self, state: SessionState) -> SessionState:
        """Remove the annotation."""
        remaining = tuple(a for a in state.annotations if a.id != self.annotation_id)
        if len(remaining) == len(state.annotations):
            raise ValueError(f"Unknown annotation: {self.annotation_id}")
        self._previous = state.annotations
        state.set_annotations(remaining)
        state.mark_dirty()
        return state

    def undo(self, state: SessionState) -> SessionState:
        """Restore the deleted annotation."""
        if self._previous is None:
            raise ValueError("Command has not been executed yet")
        state.set_annotations(self._previous)
        state.mark_dirty()
        return state

    @property
    def description(self) -> str:
        return "Delete Annotation"


class ToggleTrackCommand(Command):
    """Flip a track's visible, muted or solo flag."""

    def __init__(self, track_id: int, flag: str):
        if flag not in TRACK_FLAGS:
            raise ValueError(f"Unknown track flag: {flag}")
        self.track_id = track_id
        self.flag = flag
        self._previous_tracks: Optional[Tuple[Track, ...]] = None

    def execute(self, state: SessionState) -> SessionState:
        """Toggle the flag."""
        track = state.get_track(self.track_id)
        if track is None:
            raise ValueError(f"Track {self.track_id} not found")

        self._previous_tracks = state.tracks
        toggled = replace(track, **{self.flag: not getattr(track, self.flag)})
        state.set_tracks(tuple(toggled if t.id == self.track_id else t for t in state.tracks))
        state.mark_dirty()
        return state

    def undo(self, state: SessionState) -> SessionState:
        """Restore the previous flags."""
        if self._previous_tracks is None:
            raise ValueError("Command has not been executed yet")
        state.set_tracks(self._previous_tracks)
        state.mark_dirty()
        return state

    @property
    def description(self) -> str:
        return f"Toggle {self.flag.capitalize()}"


class ImportConfigCommand(Command):
    """Replace sync points and annotations with those of an imported config."""

    def __init__(self, config: ScoreConfig):
        self.config = config
        self._previous_points: Optional[Tuple[SyncPoint, ...]] = None
        self._previous_annotations: Tuple[Annotation, ...] = ()

    def execute(self, state: SessionState) -> SessionState:
        """Swap in the imported anchor set and annotation library."""
        self._previous_points = state.anchors.snapshot()
        self._previous_annotations = state.annotations
        state.anchors.replace_all(self.config.sync_points)
        state.set_annotations(self.config.annotations)
        state.mark_dirty()
        return state

    def undo(self, state: SessionState) -> SessionState:
        """Restore the sync points and annotations from before the import."""
        if self._previous_points is None:
            raise ValueError("Command has not been executed yet")
        state.anchors.replace_all(self._previous_points)
        state.set_annotations(self._previous_annotations)
        state.mark_dirty()
        return state

    @property
    def description(self) -> str:
        return f"Import {self.config.id}"


class CommandHistory:
    """Manages undo/redo command history."""

    def __init__(self, session: SessionState, max_history: int = 100):
        """
        Args:
            session: Session state to operate on
            max_history: Maximum number of commands to keep
        """
        self.session = session
        self.max_history = max_history
        self._undo_stack: List[Command] = []
        self._redo_stack: List[Command] = []

    def execute(self, command: Command):
        """Execute command and add to history."""
        command.execute(self.session)

        self._undo_stack.append(command)

        # Limit history size
        if len(self._undo_stack) > self.max_history:
            self._undo_stack.pop(0)

        # Clear redo stack when new command is executed
        self._redo_stack.clear()

    def undo(self) -> bool:
        """Undo last command. Returns True if successful."""
        if not self.can_undo():
            return False

        command = self._undo_stack.pop()
        command.undo(self.session)
        self._redo_stack.append(command)

        return True

    def redo(self) -> bool:
        """Redo last undone command. Returns True if successful."""
        if not self.can_redo():
            return False

        command = self._redo_stack.pop()
        command.execute(self.session)
        self._undo_stack.append(command)

        return True

    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._undo_stack) > 0

    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._redo_stack) > 0

    def clear(self):
        """Clear all command history."""
        self._undo_stack.clear()
        self._redo_stack.clear()

    def get_undo_description(self) -> Optional[str]:
        """Get description of command that would be undone."""
        if self.can_undo():
            return self._undo_stack[-1].description
        return None

    def get_redo_description(self) -> Optional[str]:
        """Get description of command that would be redone."""
        if self.can_redo():
            return self._redo_stack[-1].description
        return None
