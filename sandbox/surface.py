"""
sandbox/surface.py

Per-region drawing surface. Each surface owns a private QGraphicsScene so
shapes added by one region's program can never appear in another region.
render_all() paints that scene into an image and hands it to the flush
listener, which is how the region item on the canvas gets repainted.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional

from PyQt6.QtCore import QRectF, Qt
from PyQt6.QtGui import QImage, QPainter
from PyQt6.QtWidgets import QGraphicsScene

from sandbox.drawing import Shape

log = logging.getLogger(__name__)

FlushListener = Callable[[QImage], None]


class RegionSurface:
    """Isolated drawing surface sized to one region.

    Once disposed, every operation is silently ignored so callbacks still
    in flight from a torn-down render cannot touch anything.
    """

    def __init__(self, width: float, height: float, on_flush: Optional[FlushListener] = None):
        self._width = max(0.0, float(width))
        self._height = max(0.0, float(height))
        self._scene = QGraphicsScene(0, 0, self._width, self._height)
        self._shapes: List[Shape] = []
        self._image: Optional[QImage] = None
        self._on_flush = on_flush
        self._disposed = False
        self.render_count = 0

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def image(self) -> Optional[QImage]:
        """Image produced by the last render_all(), or None."""
        return self._image

    def objects(self) -> List[Shape]:
        return list(self._shapes)

    def add(self, *shapes: Shape) -> None:
        if self._disposed:
            return
        for shape in shapes:
            if not isinstance(shape, Shape):
                raise TypeError(f"Cannot add {type(shape).__name__} to a surface")
            if shape in self._shapes:
                continue
            self._shapes.append(shape)
            self._scene.addItem(shape._item)

    def remove(self, *shapes: Shape) -> None:
        if self._disposed:
            return
        for shape in shapes:
            if shape in self._shapes:
                self._shapes.remove(shape)
                self._scene.removeItem(shape._item)

    def clear(self) -> None:
        if self._disposed:
            return
        for shape in self._shapes:
            self._scene.removeItem(shape._item)
        self._shapes.clear()

    def render_all(self) -> None:
        """Paint all shapes and notify the flush listener."""
        if self._disposed:
            return
        w = max(1, int(math.ceil(self._width)))
        h = max(1, int(math.ceil(self._height)))
        image = QImage(w, h, QImage.Format.Format_ARGB32_Premultiplied)
        image.fill(Qt.GlobalColor.transparent)

        painter = QPainter(image)
        try:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing)
            painter.setRenderHint(QPainter.RenderHint.TextAntialiasing)
            area = QRectF(0, 0, self._width, self._height)
            self._scene.render(painter, area, area)
        finally:
            painter.end()

        self._image = image
        self.render_count += 1
        if self._on_flush is not None:
            self._on_flush(image)

    def dispose(self) -> None:
        """Drop every shape and stop accepting operations."""
        if self._disposed:
            return
        self._disposed = True
        self._scene.clear()
        self._shapes.clear()
        self._image = None
        self._on_flush = None
