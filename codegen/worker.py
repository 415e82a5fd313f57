"""
codegen/worker.py

Background worker that runs the codegen client off the GUI thread.

Each request gets its own QThread. Results come back through queued
signals to the dispatcher, which lives in the GUI thread and forwards them
to the caller's callbacks.
"""

from __future__ import annotations

import itertools
import logging
import traceback
from typing import Callable, Dict, Optional, Tuple

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot

from errors import CanvasError, CollaboratorUnavailable

log = logging.getLogger(__name__)

SuccessCallback = Callable[[str], None]
FailureCallback = Callable[[CanvasError], None]


class CodegenWorker(QObject):
    """
    Background worker that requests one program from the codegen client.

    Signals:
        finished(int, str): Emitted with the request id and raw response text
        failed(int, str): Emitted with the request id and an error message
    """

    finished = pyqtSignal(int, str)
    failed = pyqtSignal(int, str)

    def __init__(self, request_id: int, client, prompt: str):
        super().__init__()
        self.request_id = request_id
        self.client = client
        self.prompt = prompt

    def run(self):
        """Execute the codegen request."""
        try:
            text = self.client.generate(self.prompt)
            self.finished.emit(self.request_id, text)
        except CollaboratorUnavailable as e:
            self.failed.emit(self.request_id, str(e))
        except Exception as e:
            log.error("Codegen worker crashed:\n%s", traceback.format_exc())
            self.failed.emit(self.request_id, f"{type(e).__name__}: {e}")


class ThreadedDispatcher(QObject):
    """Dispatches codegen requests to worker threads.

    ``dispatch(prompt, on_success, on_failure)`` returns immediately; one of
    the callbacks runs later in the GUI thread.
    """

    def __init__(self, client, parent=None):
        super().__init__(parent)
        self.client = client
        self._ids = itertools.count(1)
        self._pending: Dict[int, Tuple[SuccessCallback, FailureCallback]] = {}
        self._threads: Dict[int, Tuple[QThread, CodegenWorker]] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def dispatch(self, prompt: str, on_success: SuccessCallback, on_failure: FailureCallback) -> int:
        request_id = next(self._ids)
        self._pending[request_id] = (on_success, on_failure)

        thread = QThread()
        worker = CodegenWorker(request_id, self.client, prompt)
        worker.moveToThread(thread)

        thread.started.connect(worker.run)
        worker.finished.connect(self._on_finished)
        worker.failed.connect(self._on_failed)

        worker.finished.connect(thread.quit)
        worker.failed.connect(thread.quit)

        def _cleanup():
            self._threads.pop(request_id, None)
            worker.deleteLater()
            thread.deleteLater()

        thread.finished.connect(_cleanup)

        # Keep references so Python does not collect the thread mid-run
        self._threads[request_id] = (thread, worker)
        log.debug("Dispatching codegen request %d", request_id)
        thread.start()
        return request_id

    @pyqtSlot(int, str)
    def _on_finished(self, request_id: int, text: str):
        callbacks = self._pending.pop(request_id, None)
        if callbacks is not None:
            callbacks[0](text)

    @pyqtSlot(int, str)
    def _on_failed(self, request_id: int, message: str):
        callbacks = self._pending.pop(request_id, None)
        if callbacks is not None:
            callbacks[1](CollaboratorUnavailable(message))

    @property
    def running_count(self) -> int:
        return len(self._threads)

    def shutdown(self, timeout_ms: Optional[int] = None) -> None:
        """Drop outstanding callbacks and join the worker threads.

        With no timeout this blocks until every request has returned. A
        thread still running after ``timeout_ms`` stays referenced until its
        ``finished`` signal, so it is never collected while alive.
        """
        self._pending.clear()
        for request_id, (thread, _worker) in list(self._threads.items()):
            thread.quit()
            if timeout_ms is None:
                thread.wait()
            else:
                thread.wait(timeout_ms)
            if thread.isFinished():
                self._threads.pop(request_id, None)
            else:
                log.info("Codegen request %d still running after shutdown", request_id)
