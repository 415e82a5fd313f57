"""
utils.py

Utility functions for the PromptCanvas application.
"""

from __future__ import annotations

import re
from typing import Optional, Union

from PyQt6.QtGui import QColor


def strip_markdown_fences(s: str) -> str:
    """
    Strip markdown code fences from a string.

    Handles formats like:
    - ```python ... ```
    - ``` ... ```
    - ```py ... ```

    Args:
        s: The string potentially wrapped in markdown fences

    Returns:
        The string with markdown fences removed
    """
    ss = (s or "").strip()

    # Pattern matches: ```<optional language>\n<content>\n```
    pattern = r'^```(?:\w+)?\s*\n?(.*?)\n?```\s*$'
    match = re.match(pattern, ss, re.DOTALL)
    if match:
        return match.group(1).strip()

    return ss


_RGBA_RE = re.compile(
    r'^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9.]+)\s*)?\)$',
    re.IGNORECASE,
)


def parse_color(value: Union[str, QColor, None], fallback: Optional[QColor] = None) -> QColor:
    """
    Parse a color description into a QColor.

    Accepts "#RRGGBB", "#RRGGBBAA", "#RGB", CSS/SVG color names ("red",
    "steelblue"), "rgb(r, g, b)", "rgba(r, g, b, a)" with a in 0..1, and
    "transparent" / "" / "none" for a fully transparent color.

    Args:
        value: The color string (or an existing QColor)
        fallback: Color to return if parsing fails (default: black)

    Returns:
        Parsed QColor or a copy of the fallback
    """
    if fallback is None:
        fallback = QColor(0, 0, 0)
    if isinstance(value, QColor):
        return QColor(value)
    if value is None:
        return QColor(fallback)

    s = str(value).strip()
    if s.lower() in ("", "transparent", "none"):
        return QColor(0, 0, 0, 0)

    m = _RGBA_RE.match(s)
    if m:
        r, g, b = (min(255, int(m.group(i))) for i in (1, 2, 3))
        alpha = 255
        if m.group(4) is not None:
            try:
                alpha = int(round(max(0.0, min(1.0, float(m.group(4)))) * 255))
            except ValueError:
                return QColor(fallback)
        return QColor(r, g, b, alpha)

    if s.startswith("#"):
        hx = s[1:]
        try:
            if len(hx) == 3:
                return QColor(int(hx[0] * 2, 16), int(hx[1] * 2, 16), int(hx[2] * 2, 16))
            if len(hx) == 6:
                return QColor(int(hx[0:2], 16), int(hx[2:4], 16), int(hx[4:6], 16))
            if len(hx) == 8:
                return QColor(int(hx[0:2], 16), int(hx[2:4], 16), int(hx[4:6], 16), int(hx[6:8], 16))
        except ValueError:
            pass
        return QColor(fallback)

    # Named colors are resolved by Qt (SVG color keyword list)
    if QColor.isValidColorName(s):
        return QColor(s)
    return QColor(fallback)


def truncate_message(text: str, limit: int = 300) -> str:
    """Shorten an error message for display in a region."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit - 3].rstrip() + "..."
