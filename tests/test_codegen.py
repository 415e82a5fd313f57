"""Tests for the Gemini client boundary, the threaded dispatcher and Qt frames."""
from __future__ import annotations

import gc
import time

import pytest

import codegen.client as client_module
from codegen.client import GeminiCodegenClient
from codegen.prompts import SYSTEM_PROMPT
from codegen.worker import ThreadedDispatcher
from errors import CollaboratorUnavailable
from sandbox.frames import QtFrameScheduler


def _wait_until(qapp, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate() and time.monotonic() < deadline:
        qapp.processEvents()
        time.sleep(0.005)
    return predicate()


class _FakeModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append((model, contents, config))
        if self.error is not None:
            raise self.error
        return type("Response", (), {"text": self.text, "usage_metadata": None})()


class _FakeGenaiClient:
    def __init__(self, models):
        self.models = models


class _StubClient:
    def __init__(self, text=None, error=None, delay=0.0):
        self.text = text
        self.error = error
        self.delay = delay

    def generate(self, prompt):
        time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.text.format(prompt=prompt)


# ─────────────────────────────────────────────────────────
# GeminiCodegenClient
# ─────────────────────────────────────────────────────────


class TestClient:
    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        if client_module.genai is None:
            pytest.skip("google-genai not installed")
        with pytest.raises(CollaboratorUnavailable, match="GOOGLE_API_KEY"):
            GeminiCodegenClient().generate("a bar chart")

    def test_missing_library(self, monkeypatch):
        monkeypatch.setattr(client_module, "genai", None)
        with pytest.raises(CollaboratorUnavailable, match="google-genai"):
            GeminiCodegenClient(api_key="k").generate("a bar chart")

    def test_defaults_from_settings(self, settings_manager):
        settings_manager.settings.codegen.model = "gemini-test"
        settings_manager.settings.codegen.temperature = 0.0
        client = GeminiCodegenClient()
        assert client.model == "gemini-test"
        assert client.temperature == 0.0

    def test_request_failure_is_unavailable(self):
        if client_module.genai is None:
            pytest.skip("google-genai not installed")
        client = GeminiCodegenClient(api_key="k")
        client._client = _FakeGenaiClient(_FakeModels(error=RuntimeError("503")))
        with pytest.raises(CollaboratorUnavailable, match="503"):
            client.generate("a bar chart")

    def test_returns_raw_text(self):
        if client_module.genai is None:
            pytest.skip("google-genai not installed")
        models = _FakeModels(text="---CODE---\nx = 1\n---EXPLANATION---\n")
        client = GeminiCodegenClient(api_key="k")
        client._client = _FakeGenaiClient(models)
        assert client.generate("a bar chart").startswith("---CODE---")
        model, contents, config = models.calls[0]
        assert contents == ["a bar chart"]
        assert config.system_instruction == SYSTEM_PROMPT

    def test_system_prompt_describes_protocol(self):
        assert "---CODE---" in SYSTEM_PROMPT
        assert "---EXPLANATION---" in SYSTEM_PROMPT
        assert "schedule_frame" in SYSTEM_PROMPT


# ─────────────────────────────────────────────────────────
# ThreadedDispatcher
# ─────────────────────────────────────────────────────────


class TestThreadedDispatcher:
    def test_success_delivered_on_gui_thread(self, qapp):
        dispatcher = ThreadedDispatcher(_StubClient(text="echo {prompt}"))
        results, errors = [], []
        dispatcher.dispatch("hello", results.append, errors.append)
        assert _wait_until(qapp, lambda: results or errors)
        assert results == ["echo hello"]
        assert dispatcher.pending_count == 0
        dispatcher.shutdown()

    def test_failure_becomes_unavailable(self, qapp):
        dispatcher = ThreadedDispatcher(_StubClient(error=ValueError("bad")))
        results, errors = [], []
        dispatcher.dispatch("hello", results.append, errors.append)
        assert _wait_until(qapp, lambda: results or errors)
        assert results == []
        assert isinstance(errors[0], CollaboratorUnavailable)
        assert "ValueError" in str(errors[0])
        dispatcher.shutdown()

    def test_shutdown_keeps_running_thread_alive(self, qapp):
        dispatcher = ThreadedDispatcher(_StubClient(text="late", delay=0.5))
        results = []
        dispatcher.dispatch("slow", results.append, results.append)
        dispatcher.shutdown(timeout_ms=20)
        assert dispatcher.running_count == 1
        gc.collect()

        assert _wait_until(qapp, lambda: dispatcher.running_count == 0)
        assert results == []

    def test_shutdown_without_timeout_joins(self, qapp):
        dispatcher = ThreadedDispatcher(_StubClient(text="late", delay=0.2))
        results = []
        dispatcher.dispatch("slow", results.append, results.append)
        dispatcher.shutdown()
        assert dispatcher.running_count == 0
        qapp.processEvents()
        assert results == []


# ─────────────────────────────────────────────────────────
# QtFrameScheduler
# ─────────────────────────────────────────────────────────


class TestQtFrameScheduler:
    def test_fires_once(self, qapp):
        frames = QtFrameScheduler(interval_ms=1)
        fired = []
        frames.schedule(lambda: fired.append(1))
        assert _wait_until(qapp, lambda: fired)
        assert _wait_until(qapp, lambda: frames.pending_count == 0)
        assert fired == [1]

    def test_cancelled_never_fires(self, qapp):
        frames = QtFrameScheduler(interval_ms=1)
        fired = []
        token = frames.schedule(lambda: fired.append(1))
        frames.cancel(token)
        _wait_until(qapp, lambda: fired, timeout=0.1)
        assert fired == []
        assert frames.pending_count == 0
