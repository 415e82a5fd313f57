"""
models.py

Data models and constants for the PromptCanvas workspace.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from codegen.parser import GeneratedProgram


# ----------------------------
# Region lifecycle phases
# ----------------------------

class RegionPhase:
    """Lifecycle phase of a region."""
    EDITING = "editing"
    GENERATING = "generating"
    RENDERING = "rendering"
    ERROR = "error"


# Phases in which the prompt can be typed and submitted
EDITABLE_PHASES = frozenset([RegionPhase.EDITING, RegionPhase.ERROR])


# ----------------------------
# Geometry
# ----------------------------

@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in canvas coordinates (top-left origin)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, px: float, py: float) -> bool:
        """Check whether a point lies inside or on the border."""
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)


def make_region_id() -> str:
    """Generate a new opaque region ID."""
    return uuid.uuid4().hex[:12]


# ----------------------------
# Region model
# ----------------------------

@dataclass
class Region:
    """One user-drawn rectangle with its prompt and generated visualization.

    Geometry fields are mutated through ``RegionStore.update`` only.
    ``prompt_snapshot`` is the value restored by cancel and ``resume_phase``
    is the phase cancel returns to.
    """
    x: float
    y: float
    width: float
    height: float
    id: str = field(default_factory=make_region_id)
    prompt: str = ""
    program: Optional["GeneratedProgram"] = None
    phase: str = RegionPhase.EDITING
    error: Optional[str] = None
    prompt_snapshot: str = ""
    resume_phase: str = RegionPhase.EDITING

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    @property
    def is_editable(self) -> bool:
        return self.phase in EDITABLE_PHASES


# Fields a store patch may touch; ``id`` is immutable
GEOMETRY_FIELDS = frozenset(["x", "y", "width", "height"])
CONTENT_FIELDS = frozenset([
    "prompt", "program", "phase", "error", "prompt_snapshot", "resume_phase",
])
MUTABLE_FIELDS = GEOMETRY_FIELDS | CONTENT_FIELDS


# ----------------------------
# Transient pointer session
# ----------------------------

@dataclass
class PendingGesture:
    """Pointer-down-to-up session state for draw, drag and resize."""
    origin_x: float
    origin_y: float
    current_x: Optional[float] = None
    current_y: Optional[float] = None
    region_id: Optional[str] = None
    start_rect: Optional[Rect] = None

    def __post_init__(self):
        if self.current_x is None:
            self.current_x = self.origin_x
        if self.current_y is None:
            self.current_y = self.origin_y

    @property
    def delta(self):
        return self.current_x - self.origin_x, self.current_y - self.origin_y
