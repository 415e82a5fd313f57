"""
sandbox/frames.py

Frame scheduling for animated programs.
"""

from __future__ import annotations

import itertools
import logging
from typing import Callable, Dict, Optional

from PyQt6.QtCore import QObject, QTimer

from settings import get_settings

log = logging.getLogger(__name__)


def _get_frame_interval() -> int:
    return get_settings().settings.sandbox.frame_interval_ms


class FrameScheduler:
    """Schedules zero-argument callbacks for the next display frame.

    ``schedule`` returns an integer token that ``cancel`` accepts.
    Cancelling an unknown or already-fired token is a no-op.
    """

    def schedule(self, callback: Callable[[], None]) -> int:
        raise NotImplementedError

    def cancel(self, token: int) -> None:
        raise NotImplementedError


class QtFrameScheduler(QObject, FrameScheduler):
    """Frame scheduler driven by single-shot QTimers on the GUI thread."""

    def __init__(self, interval_ms: Optional[int] = None, parent=None):
        super().__init__(parent)
        self.interval_ms = _get_frame_interval() if interval_ms is None else int(interval_ms)
        self._tokens = itertools.count(1)
        self._timers: Dict[int, QTimer] = {}

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    def schedule(self, callback: Callable[[], None]) -> int:
        token = next(self._tokens)
        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.setInterval(self.interval_ms)
        timer.timeout.connect(lambda: self._fire(token, callback))
        self._timers[token] = timer
        timer.start()
        return token

    def cancel(self, token: int) -> None:
        timer = self._timers.pop(token, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def cancel_all(self) -> None:
        for token in list(self._timers):
            self.cancel(token)

    def _fire(self, token: int, callback: Callable[[], None]) -> None:
        timer = self._timers.pop(token, None)
        if timer is None:
            return
        timer.deleteLater()
        callback()
