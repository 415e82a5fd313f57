"""
sandbox/drawing.py

The drawing vocabulary handed to generated programs as ``draw``.

Shapes wrap Qt graphics items. Geometry is kept relative to the shape's
``left``/``top`` position so moving a shape is a single setPos() call;
for lines and polylines ``left``/``top`` translate the given points.
"""

from __future__ import annotations

import math
import random
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from PyQt6.QtCore import QLineF, QPointF, QRectF, Qt
from PyQt6.QtGui import QBrush, QFont, QPainterPath, QPen
from PyQt6.QtWidgets import (
    QGraphicsEllipseItem,
    QGraphicsItem,
    QGraphicsLineItem,
    QGraphicsPathItem,
    QGraphicsSimpleTextItem,
)

from utils import parse_color

# camelCase spellings models tend to borrow from JavaScript canvas libraries
_OPTION_ALIASES = {
    "fontSize": "font_size",
    "fontFamily": "font_family",
    "fontWeight": "bold",
    "strokeWidth": "stroke_width",
    "rx": "radius",
}

# Options every shape understands
_COMMON_OPTIONS: Dict[str, Any] = {
    "left": 0.0,
    "top": 0.0,
    "angle": 0.0,
    "opacity": 1.0,
    "visible": True,
}


def _make_pen(color: str, width: float) -> QPen:
    if not color or float(width) <= 0:
        return QPen(Qt.PenStyle.NoPen)
    pen = QPen(parse_color(color), float(width))
    pen.setCapStyle(Qt.PenCapStyle.RoundCap)
    pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
    return pen


def _make_brush(color: str) -> QBrush:
    if not color:
        return QBrush(Qt.BrushStyle.NoBrush)
    return QBrush(parse_color(color))


def _coerce_points(points: Iterable[Any]) -> List[Tuple[float, float]]:
    """Accept [(x, y), ...], [{"x": .., "y": ..}, ...] or a flat [x1, y1, x2, y2, ...]."""
    items = list(points)
    if items and all(isinstance(v, (int, float)) for v in items):
        if len(items) % 2:
            raise ValueError("Flat point list needs an even number of values")
        return [(float(items[i]), float(items[i + 1])) for i in range(0, len(items), 2)]
    out = []
    for p in items:
        if isinstance(p, dict):
            out.append((float(p["x"]), float(p["y"])))
        else:
            x, y = p
            out.append((float(x), float(y)))
    return out


class Shape:
    """Base class for drawable shapes.

    Subclasses declare their options in ``OPTIONS`` and build/refresh the
    Qt item in ``_create_item`` and ``_sync_item``.
    """

    KIND = "shape"
    OPTIONS: Dict[str, Any] = {}

    def __init__(self, **options):
        self._options: Dict[str, Any] = dict(_COMMON_OPTIONS)
        self._options.update(self.OPTIONS)
        self._options.update(self._normalize(options))
        self._item: QGraphicsItem = self._create_item()
        self._refresh()

    def _normalize(self, options: Dict[str, Any]) -> Dict[str, Any]:
        out = {}
        for key, value in options.items():
            key = _OPTION_ALIASES.get(key, key)
            if key not in _COMMON_OPTIONS and key not in self.OPTIONS:
                raise TypeError(f"{self.KIND} got an unexpected option '{key}'")
            if key == "bold" and isinstance(value, str):
                value = value.lower() in ("bold", "700", "800", "900")
            out[key] = value
        return out

    def _create_item(self) -> QGraphicsItem:
        raise NotImplementedError

    def _sync_item(self) -> None:
        raise NotImplementedError

    def _refresh(self) -> None:
        o = self._options
        self._item.setPos(QPointF(float(o["left"]), float(o["top"])))
        self._item.setRotation(float(o["angle"]))
        self._item.setOpacity(max(0.0, min(1.0, float(o["opacity"]))))
        self._item.setVisible(bool(o["visible"]))
        self._sync_item()

    # -- public API used by generated programs ---------------------------

    def set(self, **options) -> "Shape":
        """Change one or more options and return the shape."""
        self._options.update(self._normalize(options))
        self._refresh()
        return self

    def get(self, name: str) -> Any:
        name = _OPTION_ALIASES.get(name, name)
        if name not in self._options:
            raise KeyError(name)
        return self._options[name]

    @property
    def kind(self) -> str:
        return self.KIND

    @property
    def left(self) -> float:
        return float(self._options["left"])

    @left.setter
    def left(self, value: float) -> None:
        self.set(left=value)

    @property
    def top(self) -> float:
        return float(self._options["top"])

    @top.setter
    def top(self, value: float) -> None:
        self.set(top=value)

    def __repr__(self) -> str:
        return f"<{self.KIND} left={self.left:.1f} top={self.top:.1f}>"


class Text(Shape):
    """Single-line or multi-line text anchored at its top-left corner."""

    KIND = "Text"
    OPTIONS = {
        "text": "",
        "fill": "#000000",
        "font_size": 16.0,
        "font_family": "",
        "bold": False,
    }

    def __init__(self, text: Any = "", **options):
        super().__init__(text=text, **options)

    def _create_item(self) -> QGraphicsItem:
        return QGraphicsSimpleTextItem()

    def _sync_item(self) -> None:
        o = self._options
        font = QFont()
        if o["font_family"]:
            font.setFamily(str(o["font_family"]))
        font.setPointSizeF(max(1.0, float(o["font_size"])))
        font.setBold(bool(o["bold"]))
        self._item.setFont(font)
        self._item.setText(str(o["text"]))
        self._item.setBrush(_make_brush(o["fill"]))

    @property
    def text(self) -> str:
        return str(self._options["text"])

    @text.setter
    def text(self, value: Any) -> None:
        self.set(text=value)


class Rect(Shape):
    """Rectangle with optional rounded corners."""

    KIND = "Rect"
    OPTIONS = {
        "width": 10.0,
        "height": 10.0,
        "fill": "#000000",
        "stroke": "",
        "stroke_width": 1.0,
        "radius": 0.0,
    }

    def _create_item(self) -> QGraphicsItem:
        return QGraphicsPathItem()

    def _sync_item(self) -> None:
        o = self._options
        w = max(0.0, float(o["width"]))
        h = max(0.0, float(o["height"]))
        r = max(0.0, float(o["radius"]))
        path = QPainterPath()
        if r > 0:
            path.addRoundedRect(QRectF(0, 0, w, h), r, r)
        else:
            path.addRect(QRectF(0, 0, w, h))
        self._item.setPath(path)
        self._item.setPen(_make_pen(o["stroke"], o["stroke_width"]))
        self._item.setBrush(_make_brush(o["fill"]))

    @property
    def width(self) -> float:
        return float(self._options["width"])

    @width.setter
    def width(self, value: float) -> None:
        self.set(width=value)

    @property
    def height(self) -> float:
        return float(self._options["height"])

    @height.setter
    def height(self, value: float) -> None:
        self.set(height=value)


class Circle(Shape):
    """Circle whose bounding box starts at ``left``/``top``."""

    KIND = "Circle"
    OPTIONS = {
        "radius": 10.0,
        "fill": "#000000",
        "stroke": "",
        "stroke_width": 1.0,
    }

    def _create_item(self) -> QGraphicsItem:
        return QGraphicsEllipseItem()

    def _sync_item(self) -> None:
        o = self._options
        d = 2 * max(0.0, float(o["radius"]))
        self._item.setRect(QRectF(0, 0, d, d))
        self._item.setPen(_make_pen(o["stroke"], o["stroke_width"]))
        self._item.setBrush(_make_brush(o["fill"]))

    @property
    def radius(self) -> float:
        return float(self._options["radius"])

    @radius.setter
    def radius(self, value: float) -> None:
        self.set(radius=value)


class Line(Shape):
    """Straight segment from [x1, y1, x2, y2]."""

    KIND = "Line"
    OPTIONS = {
        "points": (0.0, 0.0, 0.0, 0.0),
        "stroke": "#000000",
        "stroke_width": 1.0,
    }

    def __init__(self, points: Sequence[float] = (0.0, 0.0, 0.0, 0.0), **options):
        super().__init__(points=points, **options)

    def _create_item(self) -> QGraphicsItem:
        return QGraphicsLineItem()

    def _sync_item(self) -> None:
        o = self._options
        pts = _coerce_points(o["points"])
        if len(pts) != 2:
            raise ValueError("Line needs exactly [x1, y1, x2, y2]")
        (x1, y1), (x2, y2) = pts
        self._item.setLine(QLineF(x1, y1, x2, y2))
        self._item.setPen(_make_pen(o["stroke"], o["stroke_width"]))


class Polyline(Shape):
    """Open path through a list of points, optionally filled."""

    KIND = "Polyline"
    OPTIONS = {
        "points": (),
        "stroke": "#000000",
        "stroke_width": 1.0,
        "fill": "",
    }

    def __init__(self, points: Iterable[Any] = (), **options):
        super().__init__(points=list(points), **options)

    def _create_item(self) -> QGraphicsItem:
        return QGraphicsPathItem()

    def _sync_item(self) -> None:
        o = self._options
        pts = _coerce_points(o["points"])
        path = QPainterPath()
        if pts:
            path.moveTo(*pts[0])
            for x, y in pts[1:]:
                path.lineTo(x, y)
        self._item.setPath(path)
        self._item.setPen(_make_pen(o["stroke"], o["stroke_width"]))
        self._item.setBrush(_make_brush(o["fill"]))

    @property
    def points(self) -> List[Tuple[float, float]]:
        return _coerce_points(self._options["points"])

    @points.setter
    def points(self, value: Iterable[Any]) -> None:
        self.set(points=list(value))


class DrawingLibrary:
    """Namespace passed to programs as ``draw``.

    One instance is created per attachment so ``time()`` counts from the
    moment the region started rendering.
    """

    Text = Text
    Rect = Rect
    Circle = Circle
    Line = Line
    Polyline = Polyline
    math = math

    def __init__(self, clock: Optional[Callable[[], float]] = None, seed: Optional[int] = None):
        self._clock = clock or time.monotonic
        self._start = self._clock()
        self.random = random.Random(seed)

    def time(self) -> float:
        """Seconds elapsed since the library was created."""
        return self._clock() - self._start
