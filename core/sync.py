"""
Timeline mapping between the symbolic and performance timelines.

Both directions interpolate linearly between adjacent sync points. Outside
the anchored span an extrapolation policy applies: by default a ratio from
the origin before the first anchor ("pre-roll") and a 1:1 offset after the
last anchor ("post-roll").

Anchors sharing a source coordinate are resolved deterministically: the
bracket for a query is the last anchor (in stable sort order) whose source
coordinate is <= the query.
"""
import logging
import math
from enum import Enum
from typing import Iterable, Optional, Sequence

import numpy as np

from core.anchors import AnchorStore
from core.models import SyncPoint

logger = logging.getLogger(__name__)


class ExtrapolationPolicy(Enum):
    """How to map a query outside the anchored span."""
    RATIO = "ratio"    # scale by target/source of the edge anchor (rate from origin)
    OFFSET = "offset"  # edge anchor offset, 1:1 pacing
    SLOPE = "slope"    # continue the slope of the nearest anchor segment


DEFAULT_PRE_ROLL = ExtrapolationPolicy.RATIO
DEFAULT_POST_ROLL = ExtrapolationPolicy.OFFSET


def _ratio(value: float, source: float, target: float) -> float:
    if source == 0:
        return target
    ratio = target / source
    if not math.isfinite(ratio):
        ratio = 1.0
    return value * ratio


def _slope(sources: np.ndarray, targets: np.ndarray, edge: int) -> Optional[float]:
    """Slope of the segment at one end, skipping coincident sources."""
    if edge == 0:
        anchor_s, anchor_t = sources[0], targets[0]
        others = range(1, len(sources))
    else:
        anchor_s, anchor_t = sources[-1], targets[-1]
        others = range(len(sources) - 2, -1, -1)
    for i in others:
        span = sources[i] - anchor_s
        if span != 0:
            slope = (targets[i] - anchor_t) / span
            return float(slope) if math.isfinite(slope) else None
    return None


def map_sorted(value: float, sources: Sequence[float], targets: Sequence[float],
               pre_roll: ExtrapolationPolicy = DEFAULT_PRE_ROLL,
               post_roll: ExtrapolationPolicy = DEFAULT_POST_ROLL) -> float:
    """
    Map one value through anchors already sorted by source coordinate.

    Args:
        value: Query on the source timeline
        sources: Ascending source coordinates
        targets: Target coordinates, parallel to sources
        pre_roll: Policy for value <= first source
        post_roll: Policy for value >= last source

    Returns:
        Mapped value on the target timeline (identity when no anchors)
    """
    count = len(sources)
    if count == 0:
        return value

    sources = np.asarray(sources, dtype=float)
    targets = np.asarray(targets, dtype=float)
    first_s, first_t = float(sources[0]), float(targets[0])
    last_s, last_t = float(sources[-1]), float(targets[-1])

    if value <= first_s:
        if value == first_s:
            # Coincident first anchors resolve like the interior: last one wins
            return float(targets[int(np.searchsorted(sources, value, side="right")) - 1])
        if pre_roll is ExtrapolationPolicy.RATIO:
            return _ratio(value, first_s, first_t)
        if pre_roll is ExtrapolationPolicy.SLOPE:
            slope = _slope(sources, targets, 0)
            if slope is not None:
                return first_t + (value - first_s) * slope
        return first_t + (value - first_s)

    if value >= last_s:
        if post_roll is ExtrapolationPolicy.RATIO and last_s != 0:
            return _ratio(value, last_s, last_t)
        if post_roll is ExtrapolationPolicy.SLOPE:
            slope = _slope(sources, targets, -1)
            if slope is not None:
                return last_t + (value - last_s) * slope
        return last_t + (value - last_s)

    # first_s < value < last_s, so 0 <= i < count - 1
    i = int(np.searchsorted(sources, value, side="right")) - 1
    before_s, before_t = float(sources[i]), float(targets[i])
    after_s, after_t = float(sources[i + 1]), float(targets[i + 1])
    span = after_s - before_s
    if span <= 0:
        return before_t
    fraction = (value - before_s) / span
    return before_t + fraction * (after_t - before_t)


def _sorted_arrays(points: Iterable[SyncPoint], source_attr: str, target_attr: str):
    points = list(points)
    sources = np.array([getattr(p, source_attr) for p in points], dtype=float)
    targets = np.array([getattr(p, target_attr) for p in points], dtype=float)
    order = np.argsort(sources, kind="stable")
    return sources[order], targets[order]


def to_performance_time(symbolic_time: float, sync_points: Iterable[SyncPoint],
                        pre_roll: ExtrapolationPolicy = DEFAULT_PRE_ROLL,
                        post_roll: ExtrapolationPolicy = DEFAULT_POST_ROLL) -> float:
    """
    Convert symbolic time to performance time.

    Used when the symbolic transport drives playback and the matching
    audio position is needed.
    """
    sources, targets = _sorted_arrays(sync_points, "symbolic_time", "performance_time")
    return map_sorted(symbolic_time, sources, targets, pre_roll, post_roll)


def to_symbolic_time(performance_time: float, sync_points: Iterable[SyncPoint],
                     pre_roll: ExtrapolationPolicy = DEFAULT_PRE_ROLL,
                     post_roll: ExtrapolationPolicy = DEFAULT_POST_ROLL) -> float:
    """
    Convert performance time to symbolic time.

    Used when audio drives playback and the notes to show are needed.
    """
    sources, targets = _sorted_arrays(sync_points, "performance_time", "symbolic_time")
    return map_sorted(performance_time, sources, targets, pre_roll, post_roll)


class TimelineMapper:
    """
    Cached two-way mapper over a live AnchorStore.

    The sorted coordinate arrays are rebuilt on the first query after the
    store's revision changes, so a drag that mutates the store on every
    pointer event costs one rebuild per frame at most.
    """

    def __init__(self, store: AnchorStore,
                 pre_roll: ExtrapolationPolicy = DEFAULT_PRE_ROLL,
                 post_roll: ExtrapolationPolicy = DEFAULT_POST_ROLL):
        self.store = store
        self.pre_roll = ExtrapolationPolicy(pre_roll)
        self.post_roll = ExtrapolationPolicy(post_roll)
        self._revision: Optional[int] = None
        self._by_symbolic = (np.empty(0), np.empty(0))
        self._by_performance = (np.empty(0), np.empty(0))

    @classmethod
    def from_settings(cls, store: AnchorStore, settings: dict) -> "TimelineMapper":
        """Build with the policies from the "sync" settings section."""
        sync = settings.get("sync", {})
        return cls(
            store,
            pre_roll=ExtrapolationPolicy(sync.get("pre_roll", DEFAULT_PRE_ROLL.value)),
            post_roll=ExtrapolationPolicy(sync.get("post_roll", DEFAULT_POST_ROLL.value)),
        )

    @property
    def is_synced(self) -> bool:
        return len(self.store) > 0

    def _refresh(self):
        if self._revision == self.store.revision:
            return
        points = self.store.snapshot()
        self._by_symbolic = _sorted_arrays(points, "symbolic_time", "performance_time")
        self._by_performance = _sorted_arrays(points, "performance_time", "symbolic_time")
        self._revision = self.store.revision
        logger.debug("Rebuilt timeline mapping from %d sync points (revision %d)",
                     len(points), self._revision)

    def to_performance_time(self, symbolic_time: float) -> float:
        self._refresh()
        sources, targets = self._by_symbolic
        return map_sorted(symbolic_time, sources, targets, self.pre_roll, self.post_roll)

    def to_symbolic_time(self, performance_time: float) -> float:
        self._refresh()
        sources, targets = self._by_performance
        return map_sorted(performance_time, sources, targets, self.pre_roll, self.post_roll)
