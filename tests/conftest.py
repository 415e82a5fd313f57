"""Shared fixtures and test doubles.

Qt runs on the offscreen platform so the suite works headless.
"""
from __future__ import annotations

import os
import sys
from typing import Callable, Dict, List, Optional, Tuple

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt6.QtWidgets import QApplication

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from settings import SettingsManager, set_settings


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def qapp():
    """Provide a single QApplication for the entire test session."""
    app = QApplication.instance() or QApplication(sys.argv)
    yield app


@pytest.fixture(autouse=True)
def settings_manager(tmp_path):
    """Point the settings singleton at a throwaway directory."""
    sm = SettingsManager(settings_dir=tmp_path / "config")
    set_settings(sm)
    yield sm
    set_settings(None)


@pytest.fixture()
def frames():
    return ManualFrameScheduler()


@pytest.fixture()
def dispatcher():
    return QueuedDispatcher()


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class ManualFrameScheduler:
    """Frame scheduler that only fires when the test says so."""

    def __init__(self):
        self._next = 1
        self.pending: Dict[int, Callable[[], None]] = {}
        # Every callback ever scheduled, including cancelled ones
        self.history: Dict[int, Callable[[], None]] = {}
        self.cancelled: List[int] = []

    def schedule(self, callback):
        token = self._next
        self._next += 1
        self.pending[token] = callback
        self.history[token] = callback
        return token

    def cancel(self, token):
        if self.pending.pop(token, None) is not None:
            self.cancelled.append(token)

    def fire(self, token):
        callback = self.pending.pop(token)
        callback()

    def fire_all(self):
        """Run every callback pending right now (not ones they schedule)."""
        for token in list(self.pending):
            if token in self.pending:
                self.fire(token)


class QueuedDispatcher:
    """Dispatcher that records requests; the test answers them explicitly."""

    def __init__(self):
        self.requests: List[Tuple[str, Callable, Callable]] = []

    @property
    def prompts(self) -> List[str]:
        return [r[0] for r in self.requests]

    def dispatch(self, prompt, on_success, on_failure):
        self.requests.append((prompt, on_success, on_failure))
        return len(self.requests)

    def reply(self, raw: str, index: int = -1) -> None:
        self.requests[index][1](raw)

    def fail(self, error, index: int = -1) -> None:
        self.requests[index][2](error)


class InlineDispatcher(QueuedDispatcher):
    """Dispatcher that answers every request immediately with a fixed reply."""

    def __init__(self, reply: Optional[str] = None, error=None):
        super().__init__()
        self._reply = reply
        self._error = error

    def dispatch(self, prompt, on_success, on_failure):
        request_id = super().dispatch(prompt, on_success, on_failure)
        if self._error is not None:
            on_failure(self._error)
        else:
            on_success(self._reply)
        return request_id


def marker_response(code: str, explanation: str = "Draws something.") -> str:
    """Wrap code in the marker protocol the model is asked to follow."""
    return f"---CODE---\n{code}\n---EXPLANATION---\n{explanation}\n"
