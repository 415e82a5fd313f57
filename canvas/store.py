"""
canvas/store.py

Ordered region collection: the single source of truth for region
geometry and content.

Insertion order is paint order (last inserted is topmost). Every mutation
notifies subscribers synchronously with a RegionChange.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterator, List, Optional

from canvas.geometry import clamp_min_size, overlaps
from errors import OverlapRejected
from models import MUTABLE_FIELDS, Rect, Region
from settings import get_settings

log = logging.getLogger(__name__)

CHANGE_CREATED = "created"
CHANGE_UPDATED = "updated"
CHANGE_REMOVED = "removed"


@dataclass(frozen=True)
class RegionChange:
    """Notification sent to store subscribers after a mutation."""
    kind: str
    region_id: str
    fields: FrozenSet[str] = frozenset()
    # Geometry before an update, for listeners that care about size changes
    previous: Optional[Rect] = None


class RegionStore:
    """Ordered collection of regions with overlap-rejecting insert.

    Args:
        min_region_size: Smallest width/height a created region may have
            (default from settings).
    """

    def __init__(self, min_region_size: Optional[float] = None):
        self._min_region_size = min_region_size
        self._regions: Dict[str, Region] = {}
        self._order: List[str] = []
        self._subscribers: List[Callable[[RegionChange], None]] = []

    @property
    def min_region_size(self) -> float:
        if self._min_region_size is not None:
            return self._min_region_size
        return get_settings().settings.canvas.min_region_size

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[RegionChange], None]) -> Callable[[], None]:
        """Register a change listener.

        Returns:
            A function that removes the listener.
        """
        self._subscribers.append(callback)

        def _unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, change: RegionChange) -> None:
        for cb in list(self._subscribers):
            cb(change)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, region_id: object) -> bool:
        return region_id in self._regions

    def __iter__(self) -> Iterator[Region]:
        return iter(self.list())

    def get(self, region_id: str) -> Optional[Region]:
        return self._regions.get(region_id)

    def list(self) -> List[Region]:
        """Return regions in paint order (bottom to top)."""
        return [self._regions[rid] for rid in self._order]

    def index_of(self, region_id: str) -> int:
        return self._order.index(region_id)

    def region_at(self, px: float, py: float) -> Optional[Region]:
        """Return the topmost region containing the point, if any."""
        for rid in reversed(self._order):
            region = self._regions[rid]
            if region.rect.contains(px, py):
                return region
        return None

    def find_overlap(self, rect: Rect, ignore_id: Optional[str] = None) -> Optional[Region]:
        """Return the first region whose interior intersects ``rect``."""
        for rid in self._order:
            if rid == ignore_id:
                continue
            region = self._regions[rid]
            if overlaps(rect, region.rect):
                return region
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, x: float, y: float, width: float, height: float) -> Region:
        """Insert a new region on top of all others.

        Width and height are clamped to the minimum region size first, with
        NaN and negative sizes treated as 0.

        Raises:
            OverlapRejected: If the rectangle overlaps an existing region.
            ValueError: If the position is not finite or a size is infinite.
        """
        x, y, width, height = float(x), float(y), float(width), float(height)
        if not (math.isfinite(x) and math.isfinite(y)) or math.isinf(width) or math.isinf(height):
            raise ValueError(f"Region geometry must be finite: ({x}, {y}, {width}, {height})")
        width, height = clamp_min_size(width, height, self.min_region_size)
        candidate = Rect(x, y, width, height)
        blocking = self.find_overlap(candidate)
        if blocking is not None:
            raise OverlapRejected(blocking.id)

        region = Region(candidate.x, candidate.y, candidate.width, candidate.height)
        self._regions[region.id] = region
        self._order.append(region.id)
        log.debug("Region %s created at (%.1f, %.1f) %.1fx%.1f",
                  region.id, region.x, region.y, region.width, region.height)
        self._notify(RegionChange(CHANGE_CREATED, region.id, frozenset(MUTABLE_FIELDS)))
        return region

    def update(self, region_id: str, **patch) -> Region:
        """Apply a geometry or content patch.

        Overlap is not re-checked here; only creation enforces it.

        Raises:
            KeyError: If no region has this id.
            ValueError: If the patch names an unknown or immutable field.
        """
        region = self._regions.get(region_id)
        if region is None:
            raise KeyError(region_id)
        unknown = set(patch) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch region fields: {', '.join(sorted(unknown))}")

        previous = region.rect
        changed = set()
        for name, value in patch.items():
            if name in ("x", "y", "width", "height"):
                value = float(value)
            if getattr(region, name) != value:
                setattr(region, name, value)
                changed.add(name)

        if changed:
            self._notify(RegionChange(CHANGE_UPDATED, region_id, frozenset(changed), previous))
        return region

    def remove(self, region_id: str) -> Optional[Region]:
        """Delete a region. Unknown ids are ignored."""
        region = self._regions.pop(region_id, None)
        if region is None:
            return None
        self._order.remove(region_id)
        log.debug("Region %s removed", region_id)
        self._notify(RegionChange(CHANGE_REMOVED, region_id, previous=region.rect))
        return region
