"""
sandbox package

Isolated execution of generated programs: per-region surfaces, the drawing
library and animation frames.
"""

from sandbox.drawing import DrawingLibrary, Shape
from sandbox.executor import SAFE_BUILTINS, ExecutionSandbox
from sandbox.frames import FrameScheduler, QtFrameScheduler
from sandbox.surface import RegionSurface

__all__ = [
    "DrawingLibrary",
    "Shape",
    "ExecutionSandbox",
    "SAFE_BUILTINS",
    "FrameScheduler",
    "QtFrameScheduler",
    "RegionSurface",
]
