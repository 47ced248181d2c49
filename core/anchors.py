"""
Anchor store for timeline alignment.

The store is the editing surface of record for sync points during a
session. Every mutation bumps a revision counter so that mappers built on
the store can rebuild their sorted caches lazily on the next query.
"""
import logging
import random
import string
import time
from dataclasses import replace
from typing import Dict, Iterable, Optional, Tuple

from core.constants import SYNC_POINT_HIT_THRESHOLD
from core.models import SyncPoint

logger = logging.getLogger(__name__)

AXIS_SYMBOLIC = "symbolic"
AXIS_PERFORMANCE = "performance"


def _generate_id(prefix: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def generate_sync_point_id() -> str:
    """Unique id for a sync point ("sp-<ms>-<random>")."""
    return _generate_id("sp")


def generate_annotation_id() -> str:
    """Unique id for an annotation ("ad-<ms>-<random>")."""
    return _generate_id("ad")


class AnchorStore:
    """
    Unordered collection of sync points keyed by id.

    Insertion order is preserved; it is the tie-break order for anchors
    sharing a coordinate.
    """

    def __init__(self, points: Iterable[SyncPoint] = ()):
        self._points: Dict[str, SyncPoint] = {}
        self._revision = 0
        for point in points:
            self._points[point.id] = point

    @property
    def revision(self) -> int:
        """Incremented on every mutation."""
        return self._revision

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self):
        return iter(self.snapshot())

    def __contains__(self, point_id: str) -> bool:
        return point_id in self._points

    def snapshot(self) -> Tuple[SyncPoint, ...]:
        """Immutable view of the current points, in insertion order."""
        return tuple(self._points.values())

    def get(self, point_id: str) -> Optional[SyncPoint]:
        return self._points.get(point_id)

    def add(self, symbolic_time: float, performance_time: float,
            label: Optional[str] = None, point_id: Optional[str] = None) -> SyncPoint:
        """
        Create a sync point pairing the two instants.

        Args:
            symbolic_time: Selected instant on the symbolic timeline
            performance_time: Selected instant on the performance timeline
            label: Display label (defaults to "Sync N")
            point_id: Explicit id (generated when omitted)

        Returns:
            The new sync point
        """
        point = SyncPoint(
            id=point_id or generate_sync_point_id(),
            symbolic_time=symbolic_time,
            performance_time=performance_time,
            label=label if label is not None else f"Sync {len(self._points) + 1}",
        )
        self.insert(point)
        return point

    def insert(self, point: SyncPoint):
        """Insert (or replace) an existing sync point record."""
        self._points[point.id] = point
        self._touch()

    def move(self, point_id: str, symbolic_time: Optional[float] = None,
             performance_time: Optional[float] = None) -> SyncPoint:
        """
        Adjust one or both coordinates of a sync point.

        Coordinates are clamped at zero.

        Raises:
            ValueError: If the id is unknown
        """
        point = self._points.get(point_id)
        if point is None:
            raise ValueError(f"Unknown sync point: {point_id}")

        changes = {}
        if symbolic_time is not None:
            changes["symbolic_time"] = max(0.0, symbolic_time)
        if performance_time is not None:
            changes["performance_time"] = max(0.0, performance_time)
        if not changes:
            return point

        moved = replace(point, **changes)
        self._points[point_id] = moved
        self._touch()
        return moved

    def remove(self, point_id: str) -> SyncPoint:
        """
        Delete a sync point.

        Raises:
            ValueError: If the id is unknown
        """
        if point_id not in self._points:
            raise ValueError(f"Unknown sync point: {point_id}")
        point = self._points.pop(point_id)
        self._touch()
        return point

    def replace_all(self, points: Iterable[SyncPoint]):
        """Swap in a whole new anchor set (config load, undo)."""
        self._points = {p.id: p for p in points}
        self._touch()

    def find_at(self, x: float, axis: str, scroll: float, zoom: float,
                threshold: float = SYNC_POINT_HIT_THRESHOLD) -> Optional[SyncPoint]:
        """
        Hit-test a marker on a horizontally scrolled timeline.

        Args:
            x: Pointer x in pixels
            axis: AXIS_SYMBOLIC or AXIS_PERFORMANCE
            scroll: Time at the left edge of the view
            zoom: Pixels per second
            threshold: Maximum pixel distance

        Returns:
            First sync point within the threshold, or None
        """
        for point in self._points.values():
            point_x = (_coordinate(point, axis) - scroll) * zoom
            if abs(x - point_x) < threshold:
                return point
        return None

    def _touch(self):
        self._revision += 1


def _coordinate(point: SyncPoint, axis: str) -> float:
    if axis == AXIS_SYMBOLIC:
        return point.symbolic_time
    if axis == AXIS_PERFORMANCE:
        return point.performance_time
    raise ValueError(f"Unknown axis: {axis}")


class AnchorDrag:
    """
    Drag gesture moving one sync point along one axis.

    Each pointer update writes straight to the store; consumers pick up
    the change on their next frame. finish() returns a single command
    covering the whole gesture so it undoes in one step.
    """

    def __init__(self, store: AnchorStore, point_id: str, axis: str,
                 start_x: float, pixels_per_second: float):
        point = store.get(point_id)
        if point is None:
            raise ValueError(f"Unknown sync point: {point_id}")
        self.store = store
        self.point_id = point_id
        self.axis = axis
        self.start_x = start_x
        self.pixels_per_second = max(pixels_per_second, 1e-9)
        self.original = point
        self._start_time = _coordinate(point, axis)

    def update(self, x: float) -> SyncPoint:
        """Move the point to follow the pointer."""
        new_time = max(0.0, self._start_time + (x - self.start_x) / self.pixels_per_second)
        if self.axis == AXIS_SYMBOLIC:
            return self.store.move(self.point_id, symbolic_time=new_time)
        return self.store.move(self.point_id, performance_time=new_time)

    def finish(self):
        """
        End the gesture.

        Returns:
            MoveSyncPointCommand for the history, or None if nothing moved
        """
        from core.commands import MoveSyncPointCommand

        current = self.store.get(self.point_id)
        if current is None or current == self.original:
            return None
        logger.debug("Sync point %s dragged on %s axis: %.3f -> %.3f",
                     self.point_id, self.axis, self._start_time, _coordinate(current, self.axis))
        return MoveSyncPointCommand(
            self.point_id,
            symbolic_time=current.symbolic_time,
            performance_time=current.performance_time,
            previous=self.original,
        )

    def cancel(self):
        """Abort the gesture and restore the original position."""
        self.store.insert(self.original)

