"""
errors.py

Exception hierarchy for region creation, code generation and execution.

Every class derives from ``CanvasError`` so the lifecycle controller can
catch them at one boundary without swallowing unrelated exceptions.
"""

from __future__ import annotations

from typing import Optional


class CanvasError(Exception):
    """Base class for recoverable workspace errors."""


class OverlapRejected(CanvasError):
    """A new region would overlap an existing one."""

    def __init__(self, blocking_id: Optional[str] = None):
        self.blocking_id = blocking_id
        msg = "Region overlaps an existing region"
        if blocking_id:
            msg += f" ({blocking_id})"
        super().__init__(msg)


class CollaboratorUnavailable(CanvasError):
    """The code generation service could not be reached or refused the request."""


class ResponseError(CanvasError):
    """The model response could not be turned into a program."""


class MalformedResponse(ResponseError):
    """The response does not follow the code section protocol or is not valid Python."""


class UnsafeOrEmptyProgram(ResponseError):
    """The program uses disallowed constructs or has nothing to execute."""


class ExecutionFailed(CanvasError):
    """The program raised while rendering or animating."""
