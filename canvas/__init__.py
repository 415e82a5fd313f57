"""
canvas package

Region geometry, store, pointer gestures and the PyQt6 scene/view that
shows them.
"""

from canvas.geometry import clamp_min_size, hit_zone, map_to_canvas, normalize_rect, overlaps
from canvas.store import RegionChange, RegionStore
from canvas.gestures import DragController, DrawGestureController, ResizeController
from canvas.items import PromptEditor, RegionItem
from canvas.scene import WorkspaceScene
from canvas.view import WorkspaceView

__all__ = [
    "clamp_min_size",
    "hit_zone",
    "map_to_canvas",
    "normalize_rect",
    "overlaps",
    "RegionChange",
    "RegionStore",
    "DragController",
    "DrawGestureController",
    "ResizeController",
    "PromptEditor",
    "RegionItem",
    "WorkspaceScene",
    "WorkspaceView",
]
