"""
canvas/geometry.py

Pure geometry helpers for regions: overlap test, size clamping,
rectangle normalization and handle hit-testing.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

from models import Rect

# Hit zones returned by hit_zone()
ZONE_RESIZE = "resize"
ZONE_DRAG = "drag"
ZONE_BODY = "body"


def _finite_non_negative(v: float) -> float:
    """Map NaN, infinities below zero and negatives to 0."""
    try:
        v = float(v)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(v) or v < 0:
        return 0.0
    return v


def overlaps(a: Rect, b: Rect) -> bool:
    """Check whether the interiors of two rectangles intersect.

    Rectangles that only share an edge or a corner do not overlap.
    """
    return (
        a.x < b.right
        and b.x < a.right
        and a.y < b.bottom
        and b.y < a.bottom
    )


def clamp_min_size(width: float, height: float, minimum: float) -> Tuple[float, float]:
    """Return (width, height) raised component-wise to at least ``minimum``."""
    minimum = _finite_non_negative(minimum)
    return (
        max(_finite_non_negative(width), minimum),
        max(_finite_non_negative(height), minimum),
    )


def normalize_rect(x0: float, y0: float, x1: float, y1: float) -> Rect:
    """Build a rectangle with positive size from two opposite corners."""
    left = min(x0, x1)
    top = min(y0, y1)
    return Rect(left, top, abs(x1 - x0), abs(y1 - y0))


def map_to_canvas(px: float, py: float, canvas_width: float, canvas_height: float) -> Tuple[float, float]:
    """Clamp a pointer position into the canvas bounds."""
    return (
        min(max(px, 0.0), _finite_non_negative(canvas_width)),
        min(max(py, 0.0), _finite_non_negative(canvas_height)),
    )


def hit_zone(rect: Rect, px: float, py: float, bar_height: float, handle_size: float) -> Optional[str]:
    """Classify a point relative to a region frame.

    The resize handle is the square of ``handle_size`` at the bottom-right
    corner and wins over the drag bar (the top ``bar_height`` strip) when
    the region is small enough for them to meet.

    Returns:
        ZONE_RESIZE, ZONE_DRAG, ZONE_BODY, or None if the point is outside.
    """
    if not rect.contains(px, py):
        return None
    if px >= rect.right - handle_size and py >= rect.bottom - handle_size:
        return ZONE_RESIZE
    if py <= rect.y + bar_height:
        return ZONE_DRAG
    return ZONE_BODY
