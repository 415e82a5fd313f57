"""
canvas/gestures.py

Pointer state machines for drawing new regions and dragging/resizing
existing ones.

The controllers know nothing about Qt; the scene forwards scene-coordinate
pointer positions to them and they mutate the RegionStore.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from canvas.geometry import clamp_min_size, normalize_rect
from canvas.store import RegionStore
from errors import OverlapRejected
from models import PendingGesture, Rect, Region
from settings import get_settings

log = logging.getLogger(__name__)


def _get_min_region_size() -> float:
    """Get minimum region size from settings. Default: 100.0 units."""
    return get_settings().settings.canvas.min_region_size


def _get_min_draw_distance() -> float:
    """Get minimum drag distance for drawing from settings. Default: 10.0 units."""
    return get_settings().settings.canvas.min_draw_distance


class DrawGestureController:
    """Turns a pointer down/move/up sequence into a new region.

    States: Idle -> Drawing -> Idle. A release whose width or height is
    below ``min_draw_distance`` creates nothing. Otherwise the rectangle is
    grown to the minimum region size and inserted; overlaps are discarded
    silently.
    """

    def __init__(
        self,
        store: RegionStore,
        min_region_size: Optional[float] = None,
        min_draw_distance: Optional[float] = None,
    ):
        self.store = store
        self._min_region_size = min_region_size
        self._min_draw_distance = min_draw_distance
        self._gesture: Optional[PendingGesture] = None

    @property
    def min_region_size(self) -> float:
        if self._min_region_size is not None:
            return self._min_region_size
        return _get_min_region_size()

    @property
    def min_draw_distance(self) -> float:
        if self._min_draw_distance is not None:
            return self._min_draw_distance
        return _get_min_draw_distance()

    @property
    def is_drawing(self) -> bool:
        return self._gesture is not None

    def pointer_down(self, x: float, y: float) -> bool:
        """Start drawing at (x, y). Returns False if a gesture is already open."""
        if self._gesture is not None:
            return False
        self._gesture = PendingGesture(x, y)
        return True

    def pointer_move(self, x: float, y: float) -> Optional[Rect]:
        """Track the pointer and return the live (normalized) rectangle."""
        if self._gesture is None:
            return None
        self._gesture.current_x = x
        self._gesture.current_y = y
        return self.preview()

    def preview(self) -> Optional[Rect]:
        """Return the normalized rectangle of the open gesture, if any."""
        g = self._gesture
        if g is None:
            return None
        return normalize_rect(g.origin_x, g.origin_y, g.current_x, g.current_y)

    def pointer_up(self, x: float, y: float) -> Optional[Region]:
        """Finish the gesture and try to commit the rectangle.

        Returns:
            The created region, or None if the release was too small or the
            rectangle overlaps an existing region.
        """
        if self._gesture is None:
            return None
        self.pointer_move(x, y)
        rect = self.preview()
        self._gesture = None

        threshold = self.min_draw_distance
        if rect.width < threshold or rect.height < threshold:
            log.debug("Draw gesture discarded: %.1fx%.1f below %.1f", rect.width, rect.height, threshold)
            return None

        width, height = clamp_min_size(rect.width, rect.height, self.min_region_size)
        try:
            return self.store.create(rect.x, rect.y, width, height)
        except OverlapRejected as e:
            log.debug("Draw gesture discarded: %s", e)
            return None

    def cancel(self) -> None:
        """Drop the open gesture without creating anything."""
        self._gesture = None


class _RegionSessionController:
    """Shared bookkeeping for per-region pointer sessions (drag, resize)."""

    def __init__(self, store: RegionStore):
        self.store = store
        self._sessions: Dict[str, PendingGesture] = {}

    def is_active(self, region_id: str) -> bool:
        return region_id in self._sessions

    def begin(self, region_id: str, x: float, y: float) -> bool:
        """Open a session for a region, replacing any stale one.

        Returns:
            False if the region does not exist.
        """
        region = self.store.get(region_id)
        if region is None:
            return False
        self._sessions[region_id] = PendingGesture(x, y, region_id=region_id, start_rect=region.rect)
        return True

    def move(self, region_id: str, x: float, y: float) -> Optional[Region]:
        session = self._sessions.get(region_id)
        if session is None:
            return None
        if region_id not in self.store:
            self._sessions.pop(region_id, None)
            return None
        session.current_x = x
        session.current_y = y
        dx, dy = session.delta
        return self._apply(region_id, session.start_rect, dx, dy)

    def end(self, region_id: str) -> Optional[PendingGesture]:
        """Close the session for a region and return its final state."""
        return self._sessions.pop(region_id, None)

    def _apply(self, region_id: str, start: Rect, dx: float, dy: float) -> Region:
        raise NotImplementedError


class DragController(_RegionSessionController):
    """Moves a region by the pointer delta since the session started."""

    def _apply(self, region_id: str, start: Rect, dx: float, dy: float) -> Region:
        return self.store.update(region_id, x=start.x + dx, y=start.y + dy)


class ResizeController(_RegionSessionController):
    """Resizes a region from its bottom-right handle, clamped to the minimum size."""

    def __init__(
        self,
        store: RegionStore,
        min_region_size: Optional[float] = None,
    ):
        super().__init__(store)
        self._min_region_size = min_region_size

    @property
    def min_region_size(self) -> float:
        if self._min_region_size is not None:
            return self._min_region_size
        return _get_min_region_size()

    def _apply(self, region_id: str, start: Rect, dx: float, dy: float) -> Region:
        width, height = clamp_min_size(start.width + dx, start.height + dy, self.min_region_size)
        return self.store.update(region_id, width=width, height=height)
