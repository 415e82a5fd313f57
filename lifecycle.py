"""
lifecycle.py

Per-region state machine tying code generation, parsing and the sandbox
together.

    EDITING --submit--> GENERATING --success--> RENDERING
    GENERATING --failure--> ERROR (prompt kept, stored program untouched)
    RENDERING --edit--> EDITING (sandbox detached, prompt snapshotted)
    EDITING/ERROR --cancel--> RENDERING | EDITING (prompt reverted)
    any --delete--> removed

All CanvasError subclasses raised along the way stop here; they become
the region's ERROR phase and never reach the Qt event loop.
"""

from __future__ import annotations

import itertools
import logging
from typing import Callable, Dict, List, Optional

from canvas.store import CHANGE_REMOVED, CHANGE_UPDATED, RegionChange, RegionStore
from codegen.parser import GeneratedProgram, ResponseParser
from debug_trace import trace
from errors import (
    CanvasError,
    CollaboratorUnavailable,
    ExecutionFailed,
    MalformedResponse,
    UnsafeOrEmptyProgram,
)
from models import Region, RegionPhase
from sandbox.executor import ExecutionSandbox
from utils import truncate_message

log = logging.getLogger(__name__)

ChangeCallback = Callable[[str], None]

_ERROR_LABELS = (
    (CollaboratorUnavailable, "Code generation unavailable"),
    (MalformedResponse, "Malformed response"),
    (UnsafeOrEmptyProgram, "Program rejected"),
    (ExecutionFailed, "Program failed"),
)


def describe_error(error: CanvasError) -> str:
    """User-visible message for a failed submit or render."""
    label = "Error"
    for kind, text in _ERROR_LABELS:
        if isinstance(error, kind):
            label = text
            break
    detail = str(error).strip()
    return truncate_message(f"{label}: {detail}" if detail else label)


class RegionLifecycleController:
    """Drives regions through editing, generation and rendering.

    Args:
        store: The RegionStore holding every region.
        sandbox: ExecutionSandbox that renders programs. Its ``on_failure``
            hook is taken over by this controller.
        dispatcher: Object with ``dispatch(prompt, on_success, on_failure)``.
        parser: ResponseParser (default built from settings).
    """

    def __init__(self, store: RegionStore, sandbox: ExecutionSandbox, dispatcher,
                 parser: Optional[ResponseParser] = None):
        self.store = store
        self.sandbox = sandbox
        self.dispatcher = dispatcher
        self.parser = parser or ResponseParser()

        self._request_ids = itertools.count(1)
        # region id -> token of the only response still accepted for it
        self._requests: Dict[str, int] = {}
        self._errors: Dict[str, CanvasError] = {}
        self._listeners: List[ChangeCallback] = []

        self._unsubscribe = store.subscribe(self._on_store_change)
        sandbox.on_failure = self._on_frame_failure

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def on_changed(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register a callback fired with a region id after each transition."""
        self._listeners.append(callback)

        def _remove():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    def _emit(self, region_id: str) -> None:
        for cb in list(self._listeners):
            cb(region_id)

    def last_error(self, region_id: str) -> Optional[CanvasError]:
        """The exception behind the region's current ERROR phase, if any."""
        return self._errors.get(region_id)

    def is_pending(self, region_id: str) -> bool:
        return region_id in self._requests

    def _require(self, region_id: str) -> Region:
        region = self.store.get(region_id)
        if region is None:
            raise KeyError(region_id)
        return region

    def _set_phase(self, region_id: str, phase: str, **patch) -> None:
        old = self._require(region_id).phase
        self.store.update(region_id, phase=phase, **patch)
        if old != phase:
            trace(f"{region_id}: {old} -> {phase}", "LIFECYCLE")

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    def set_prompt(self, region_id: str, text: str) -> bool:
        """Replace the prompt text. Only allowed while Editing or Error."""
        region = self._require(region_id)
        if not region.is_editable:
            return False
        self.store.update(region_id, prompt=text)
        return True

    def submit(self, region_id: str) -> bool:
        """Request a program for the region's prompt.

        Returns:
            False if the region is not editable or the prompt is blank.
        """
        region = self._require(region_id)
        if not region.is_editable or not region.prompt.strip():
            return False
        self._start_request(region)
        return True

    def regenerate(self, region_id: str) -> bool:
        """Request a fresh program for a rendered region's current prompt."""
        region = self._require(region_id)
        if region.phase != RegionPhase.RENDERING or not region.prompt.strip():
            return False
        self._start_request(region)
        return True

    def edit(self, region_id: str) -> bool:
        """Leave Rendering (or abandon Generating) and reopen the prompt."""
        region = self._require(region_id)
        if region.phase not in (RegionPhase.RENDERING, RegionPhase.GENERATING):
            return False
        self._requests.pop(region_id, None)
        self.sandbox.detach(region_id)
        resume = RegionPhase.RENDERING if region.program is not None else RegionPhase.EDITING
        snapshot = region.prompt if region.phase == RegionPhase.RENDERING else region.prompt_snapshot
        self._set_phase(region_id, RegionPhase.EDITING,
                        prompt_snapshot=snapshot, resume_phase=resume, error=None)
        self._errors.pop(region_id, None)
        self._emit(region_id)
        return True

    def cancel(self, region_id: str) -> bool:
        """Discard prompt edits and return to the phase editing started from.

        Never contacts the code generator.
        """
        region = self._require(region_id)
        if not region.is_editable:
            return False
        self._errors.pop(region_id, None)
        if region.resume_phase == RegionPhase.RENDERING and region.program is not None:
            self._set_phase(region_id, RegionPhase.RENDERING,
                            prompt=region.prompt_snapshot, error=None)
            try:
                self._render(region, region.program)
            except ExecutionFailed as e:
                self._fail(region_id, e)
                return True
        else:
            self._set_phase(region_id, RegionPhase.EDITING,
                            prompt=region.prompt_snapshot, error=None)
        self._emit(region_id)
        return True

    def delete(self, region_id: str) -> bool:
        """Remove a region; its sandbox and pending response are dropped."""
        self._requests.pop(region_id, None)
        return self.store.remove(region_id) is not None

    def shutdown(self) -> None:
        self._unsubscribe()
        self._requests.clear()
        self.sandbox.detach_all()

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def _start_request(self, region: Region) -> None:
        region_id = region.id
        self.sandbox.detach(region_id)
        token = next(self._request_ids)
        self._requests[region_id] = token
        self._errors.pop(region_id, None)
        resume = RegionPhase.RENDERING if region.program is not None else RegionPhase.EDITING
        self._set_phase(region_id, RegionPhase.GENERATING,
                        prompt_snapshot=region.prompt, resume_phase=resume, error=None)
        log.info("Region %s: requesting program (request %d)", region_id, token)
        self._emit(region_id)

        self.dispatcher.dispatch(
            region.prompt,
            lambda raw: self._on_response(region_id, token, raw),
            lambda error: self._on_request_failed(region_id, token, error),
        )

    def _accept(self, region_id: str, token: int) -> bool:
        if self._requests.get(region_id) != token:
            log.debug("Dropping stale response %d for region %s", token, region_id)
            return False
        del self._requests[region_id]
        return region_id in self.store

    def _on_response(self, region_id: str, token: int, raw: str) -> None:
        if not self._accept(region_id, token):
            return
        try:
            program = self.parser.parse(raw)
        except CanvasError as e:
            self._fail(region_id, e)
            return

        region = self._require(region_id)
        self._set_phase(region_id, RegionPhase.RENDERING)
        try:
            self._render(region, program)
        except ExecutionFailed as e:
            self._fail(region_id, e)
            return

        self.store.update(region_id, program=program, error=None,
                          resume_phase=RegionPhase.RENDERING)
        log.info("Region %s: rendering %d-char program", region_id, len(program.source))
        self._emit(region_id)

    def _on_request_failed(self, region_id: str, token: int, error: CanvasError) -> None:
        if not self._accept(region_id, token):
            return
        if not isinstance(error, CanvasError):
            error = CollaboratorUnavailable(str(error))
        self._fail(region_id, error)

    def _render(self, region: Region, program: GeneratedProgram) -> None:
        surface = self.sandbox.attach(region)
        self.sandbox.run(program, surface)

    def _fail(self, region_id: str, error: CanvasError) -> None:
        self.sandbox.detach(region_id)
        if region_id not in self.store:
            return
        message = describe_error(error)
        log.warning("Region %s: %s", region_id, message)
        self._errors[region_id] = error
        self._set_phase(region_id, RegionPhase.ERROR, error=message)
        self._emit(region_id)

    # ------------------------------------------------------------------
    # Store and sandbox hooks
    # ------------------------------------------------------------------

    def _on_store_change(self, change: RegionChange) -> None:
        region_id = change.region_id
        if change.kind == CHANGE_REMOVED:
            self._requests.pop(region_id, None)
            self._errors.pop(region_id, None)
            self.sandbox.detach(region_id)
            return
        if change.kind != CHANGE_UPDATED or not ({"width", "height"} & change.fields):
            return

        region = self.store.get(region_id)
        if region is None or region.phase != RegionPhase.RENDERING or region.program is None:
            return
        if not self.sandbox.is_attached(region_id):
            return
        # Surface must match the new size before any further frame runs
        trace(f"{region_id}: re-render at {region.width:.0f}x{region.height:.0f}", "LIFECYCLE")
        try:
            self._render(region, region.program)
        except ExecutionFailed as e:
            self._fail(region_id, e)

    def _on_frame_failure(self, region_id: str, error: ExecutionFailed) -> None:
        region = self.store.get(region_id)
        if region is None or region.phase != RegionPhase.RENDERING:
            return
        self._fail(region_id, error)
