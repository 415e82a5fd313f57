"""
sandbox/executor.py

Runs validated programs against a region's surface.

Programs reach only what they are handed: the region's surface, its size,
the drawing library and the frame functions, plus a small set of safe
builtins. Every attachment carries a generation number; frame callbacks
check it before doing anything, so nothing from a detached or replaced
render can draw after teardown.
"""

from __future__ import annotations

import builtins
import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from PyQt6.QtGui import QImage

from codegen.parser import GeneratedProgram
from debug_trace import trace
from errors import ExecutionFailed
from sandbox.drawing import DrawingLibrary
from sandbox.frames import FrameScheduler
from sandbox.surface import RegionSurface
from utils import truncate_message

if TYPE_CHECKING:
    from models import Region

log = logging.getLogger(__name__)

_SAFE_BUILTIN_NAMES = (
    "abs", "all", "any", "bool", "dict", "divmod", "enumerate", "filter",
    "float", "format", "frozenset", "int", "isinstance", "issubclass", "iter",
    "len", "list", "map", "max", "min", "next", "pow", "range", "repr",
    "reversed", "round", "set", "slice", "sorted", "str", "sum", "tuple", "zip",
    "object", "property", "staticmethod", "classmethod",
    "super",
    "Exception", "ArithmeticError", "AttributeError", "IndexError", "KeyError",
    "LookupError", "StopIteration", "TypeError", "ValueError", "ZeroDivisionError",
)

_program_log = logging.getLogger("promptcanvas.program")


def _program_print(*args, **kwargs) -> None:
    sep = kwargs.get("sep", " ")
    _program_log.info(str(sep).join(str(a) for a in args))


SAFE_BUILTINS: Dict[str, Any] = {name: getattr(builtins, name) for name in _SAFE_BUILTIN_NAMES}
SAFE_BUILTINS["print"] = _program_print
# Needed for class statements inside programs
SAFE_BUILTINS["__build_class__"] = builtins.__build_class__

FailureHook = Callable[[str, ExecutionFailed], None]
FlushHook = Callable[[str, QImage], None]


def _failure_message(exc: BaseException) -> str:
    return truncate_message(f"{type(exc).__name__}: {exc}")


@dataclass
class _Attachment:
    region_id: str
    generation: int
    surface: RegionSurface
    library: DrawingLibrary
    pending_frame: Optional[int] = None


class ExecutionSandbox:
    """Attaches surfaces to regions and runs programs on them.

    Args:
        scheduler: FrameScheduler used for animation frames.
        library: Factory for the ``draw`` namespace of each attachment
            (default DrawingLibrary).
        on_failure: Called with (region_id, ExecutionFailed) when a frame
            callback raises. The attachment is already detached by then.
        on_flush: Called with (region_id, image) each time a surface of a
            live attachment is rendered.
    """

    def __init__(
        self,
        scheduler: FrameScheduler,
        library: Optional[Callable[[], DrawingLibrary]] = None,
        on_failure: Optional[FailureHook] = None,
        on_flush: Optional[FlushHook] = None,
    ):
        self.scheduler = scheduler
        self.library_factory = library or DrawingLibrary
        self.on_failure = on_failure
        self.on_flush = on_flush
        self._generations = itertools.count(1)
        self._attachments: Dict[str, _Attachment] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_attached(self, region_id: str) -> bool:
        return region_id in self._attachments

    def surface_for(self, region_id: str) -> Optional[RegionSurface]:
        att = self._attachments.get(region_id)
        return att.surface if att else None

    def pending_frame(self, region_id: str) -> Optional[int]:
        """Token of the frame waiting to run for this region, if any."""
        att = self._attachments.get(region_id)
        return att.pending_frame if att else None

    def generation(self, region_id: str) -> Optional[int]:
        att = self._attachments.get(region_id)
        return att.generation if att else None

    # ------------------------------------------------------------------
    # Attach / detach
    # ------------------------------------------------------------------

    def attach(self, region: "Region") -> RegionSurface:
        """Create a fresh surface at the region's size, replacing any previous one."""
        region_id, width, height = region.id, region.width, region.height
        self.detach(region_id)
        generation = next(self._generations)
        surface = RegionSurface(
            width, height,
            on_flush=lambda image: self._surface_flushed(region_id, generation, image),
        )
        self._attachments[region_id] = _Attachment(
            region_id=region_id,
            generation=generation,
            surface=surface,
            library=self.library_factory(),
        )
        trace(f"attach {region_id} gen={generation} {width:.0f}x{height:.0f}", "SANDBOX")
        return surface

    def detach(self, region_id: str) -> bool:
        """Tear down a region's surface and pending frame.

        Returns:
            True if something was attached. Detaching twice is harmless.
        """
        att = self._attachments.pop(region_id, None)
        if att is None:
            return False
        if att.pending_frame is not None:
            self.scheduler.cancel(att.pending_frame)
            att.pending_frame = None
        att.surface.dispose()
        trace(f"detach {region_id} gen={att.generation}", "SANDBOX")
        return True

    def detach_all(self) -> None:
        for region_id in list(self._attachments):
            self.detach(region_id)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, program: GeneratedProgram, surface: RegionSurface) -> None:
        """Execute a program against an attached surface.

        Raises:
            ExecutionFailed: If the surface is not attached or the program raises.
        """
        att = self._attachment_for(surface)
        if att is None:
            raise ExecutionFailed("Surface is not attached to a region")
        region_id = att.region_id

        bindings = self._bindings(att)
        try:
            args = [bindings[name] for name in program.parameters]
        except KeyError as e:
            raise ExecutionFailed(f"Unknown program parameter {e}") from e

        namespace: Dict[str, Any] = {
            "__builtins__": SAFE_BUILTINS,
            "__name__": "region_program",
        }
        try:
            code = compile(program.source, f"<region {region_id}>", "exec")
            exec(code, namespace)
            namespace[program.entry_point](*args)
        except Exception as e:
            log.warning("Program for region %s failed: %s", region_id, e)
            raise ExecutionFailed(_failure_message(e)) from e

    def _attachment_for(self, surface: RegionSurface) -> Optional[_Attachment]:
        for att in self._attachments.values():
            if att.surface is surface:
                return att
        return None

    def _bindings(self, att: _Attachment) -> Dict[str, Any]:
        surface = att.surface
        return {
            "surface": surface,
            "width": surface.width,
            "height": surface.height,
            "draw": att.library,
            "schedule_frame": lambda callback: self._schedule_frame(att, callback),
            "cancel_frame": lambda token=None: self._cancel_frame(att, token),
        }

    def _is_current(self, att: _Attachment) -> bool:
        current = self._attachments.get(att.region_id)
        return current is not None and current.generation == att.generation

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    def _schedule_frame(self, att: _Attachment, callback: Callable[[], None]) -> Optional[int]:
        if not callable(callback):
            raise TypeError("schedule_frame() needs a callable")
        if not self._is_current(att):
            return None

        # One pending frame per region; a new request replaces the old one
        if att.pending_frame is not None:
            self.scheduler.cancel(att.pending_frame)
            att.pending_frame = None

        holder: Dict[str, int] = {}

        def fire():
            token = holder.get("token")
            if not self._is_current(att) or att.pending_frame != token:
                trace(f"dropped stale frame for {att.region_id}", "FRAME")
                return
            att.pending_frame = None
            try:
                callback()
            except Exception as e:
                self._frame_failed(att, e)

        token = self.scheduler.schedule(fire)
        holder["token"] = token
        att.pending_frame = token
        return token

    def _cancel_frame(self, att: _Attachment, token: Optional[int]) -> None:
        if not self._is_current(att) or att.pending_frame is None:
            return
        if token is not None and token != att.pending_frame:
            return
        self.scheduler.cancel(att.pending_frame)
        att.pending_frame = None

    def _frame_failed(self, att: _Attachment, exc: Exception) -> None:
        error = ExecutionFailed(_failure_message(exc))
        log.warning("Animation frame for region %s failed: %s", att.region_id, exc)
        self.detach(att.region_id)
        if self.on_failure is not None:
            self.on_failure(att.region_id, error)

    def _surface_flushed(self, region_id: str, generation: int, image: QImage) -> None:
        att = self._attachments.get(region_id)
        if att is None or att.generation != generation:
            return
        if self.on_flush is not None:
            self.on_flush(region_id, image)
