"""Tests for the region lifecycle: submit, edit, cancel, failures and resize."""
from __future__ import annotations

import pytest

from canvas.store import RegionStore
from conftest import InlineDispatcher, marker_response
from errors import CollaboratorUnavailable, ExecutionFailed, MalformedResponse, UnsafeOrEmptyProgram
from lifecycle import RegionLifecycleController, describe_error
from models import RegionPhase
from sandbox.executor import ExecutionSandbox


STATIC = marker_response(
    'surface.add(draw.Rect(left=0, top=0, width=width, height=height, fill="red"))'
)

ANIMATED = marker_response(
    "def render(surface, width, height, draw, schedule_frame, cancel_frame):\n"
    "    dot = draw.Circle(radius=5)\n"
    "    surface.add(dot)\n"
    "    def tick():\n"
    "        dot.left = dot.left + 1\n"
    "        surface.render_all()\n"
    "        schedule_frame(tick)\n"
    "    schedule_frame(tick)\n"
)


@pytest.fixture()
def store():
    return RegionStore()


@pytest.fixture()
def sandbox(qapp, frames):
    return ExecutionSandbox(frames)


@pytest.fixture()
def lifecycle(store, sandbox, dispatcher):
    return RegionLifecycleController(store, sandbox, dispatcher)


@pytest.fixture()
def region(store):
    return store.create(0, 0, 200, 150)


def _render(lifecycle, dispatcher, region_id, prompt="draw a red square", raw=STATIC):
    lifecycle.set_prompt(region_id, prompt)
    assert lifecycle.submit(region_id)
    dispatcher.reply(raw)


# ─────────────────────────────────────────────────────────
# Submit
# ─────────────────────────────────────────────────────────


class TestSubmit:
    def test_submit_enters_generating(self, lifecycle, dispatcher, region, store):
        lifecycle.set_prompt(region.id, "bar chart")
        assert lifecycle.submit(region.id)
        assert store.get(region.id).phase == RegionPhase.GENERATING
        assert dispatcher.prompts == ["bar chart"]
        assert lifecycle.is_pending(region.id)

    def test_blank_prompt_not_submitted(self, lifecycle, dispatcher, region):
        lifecycle.set_prompt(region.id, "   \n")
        assert not lifecycle.submit(region.id)
        assert dispatcher.requests == []

    def test_prompt_locked_while_generating(self, lifecycle, region, store):
        lifecycle.set_prompt(region.id, "pie chart")
        lifecycle.submit(region.id)
        assert not lifecycle.set_prompt(region.id, "changed")
        assert not lifecycle.submit(region.id)
        assert store.get(region.id).prompt == "pie chart"

    def test_success_renders(self, lifecycle, dispatcher, region, store, sandbox):
        _render(lifecycle, dispatcher, region.id)
        r = store.get(region.id)
        assert r.phase == RegionPhase.RENDERING
        assert r.program is not None
        assert r.error is None
        assert r.prompt == "draw a red square"
        assert sandbox.surface_for(region.id).render_count == 1

    def test_on_changed_notified(self, lifecycle, dispatcher, region):
        seen = []
        lifecycle.on_changed(seen.append)
        _render(lifecycle, dispatcher, region.id)
        assert seen == [region.id, region.id]

    def test_regenerate_from_rendering(self, lifecycle, dispatcher, region, store):
        _render(lifecycle, dispatcher, region.id)
        assert lifecycle.regenerate(region.id)
        assert store.get(region.id).phase == RegionPhase.GENERATING
        assert len(dispatcher.requests) == 2


# ─────────────────────────────────────────────────────────
# Failures
# ─────────────────────────────────────────────────────────


class TestFailures:
    def test_empty_code_section(self, lifecycle, dispatcher, region, store, sandbox):
        _render(lifecycle, dispatcher, region.id, raw="---CODE---\n\n---EXPLANATION---\nA red square")
        r = store.get(region.id)
        assert r.phase == RegionPhase.ERROR
        assert isinstance(lifecycle.last_error(region.id), MalformedResponse)
        assert r.program is None
        assert r.prompt == "draw a red square"
        assert r.error.startswith("Malformed response")
        assert not sandbox.is_attached(region.id)

    def test_unsafe_program(self, lifecycle, dispatcher, region, store):
        _render(lifecycle, dispatcher, region.id, raw=marker_response("import os"))
        assert store.get(region.id).phase == RegionPhase.ERROR
        assert isinstance(lifecycle.last_error(region.id), UnsafeOrEmptyProgram)

    def test_deeply_nested_program_ends_in_error(self, lifecycle, dispatcher, region, store):
        _render(lifecycle, dispatcher, region.id, raw=marker_response("x = " + "1 + " * 3000 + "1"))
        r = store.get(region.id)
        assert r.phase == RegionPhase.ERROR
        assert isinstance(lifecycle.last_error(region.id), MalformedResponse)
        assert not lifecycle.is_pending(region.id)

    def test_collaborator_unavailable(self, lifecycle, dispatcher, region, store):
        lifecycle.set_prompt(region.id, "a clock")
        lifecycle.submit(region.id)
        dispatcher.fail(CollaboratorUnavailable("GOOGLE_API_KEY is not set."))
        r = store.get(region.id)
        assert r.phase == RegionPhase.ERROR
        assert "GOOGLE_API_KEY" in r.error
        assert r.prompt == "a clock"

    def test_execution_failure_keeps_previous_program(self, lifecycle, dispatcher, region, store, sandbox):
        _render(lifecycle, dispatcher, region.id)
        good = store.get(region.id).program

        assert lifecycle.regenerate(region.id)
        dispatcher.reply(marker_response("x = 1 / 0"))
        r = store.get(region.id)
        assert r.phase == RegionPhase.ERROR
        assert isinstance(lifecycle.last_error(region.id), ExecutionFailed)
        assert r.program is good
        assert not sandbox.is_attached(region.id)

    def test_retry_after_error(self, lifecycle, dispatcher, region, store):
        _render(lifecycle, dispatcher, region.id, raw=marker_response("pass"))
        assert store.get(region.id).phase == RegionPhase.ERROR
        assert lifecycle.set_prompt(region.id, "a blue square")
        assert lifecycle.submit(region.id)
        dispatcher.reply(STATIC)
        r = store.get(region.id)
        assert r.phase == RegionPhase.RENDERING
        assert r.error is None
        assert lifecycle.last_error(region.id) is None

    def test_frame_failure_moves_to_error(self, lifecycle, dispatcher, region, store, frames):
        raw = marker_response(
            "def tick():\n    raise ValueError('frame broke')\nschedule_frame(tick)"
        )
        _render(lifecycle, dispatcher, region.id, raw=raw)
        assert store.get(region.id).phase == RegionPhase.RENDERING
        frames.fire_all()
        r = store.get(region.id)
        assert r.phase == RegionPhase.ERROR
        assert "frame broke" in r.error

    def test_inline_dispatcher_failure(self, store, sandbox, region):
        lifecycle = RegionLifecycleController(
            store, sandbox, InlineDispatcher(error=CollaboratorUnavailable("offline")))
        lifecycle.set_prompt(region.id, "anything")
        lifecycle.submit(region.id)
        assert store.get(region.id).phase == RegionPhase.ERROR
        assert not lifecycle.is_pending(region.id)


# ─────────────────────────────────────────────────────────
# Edit / cancel
# ─────────────────────────────────────────────────────────


class TestEditCancel:
    def test_snapshot_revert_law(self, lifecycle, dispatcher, region, store, sandbox):
        _render(lifecycle, dispatcher, region.id, prompt="draw a red square")
        assert lifecycle.edit(region.id)
        assert store.get(region.id).phase == RegionPhase.EDITING
        assert not sandbox.is_attached(region.id)

        lifecycle.set_prompt(region.id, "something else entirely")
        assert lifecycle.cancel(region.id)

        r = store.get(region.id)
        assert r.prompt == "draw a red square"
        assert r.phase == RegionPhase.RENDERING
        assert sandbox.is_attached(region.id)
        assert len(dispatcher.requests) == 1

    def test_cancel_without_program_returns_to_editing(self, lifecycle, region, store):
        lifecycle.set_prompt(region.id, "typed but never sent")
        assert lifecycle.cancel(region.id)
        r = store.get(region.id)
        assert r.phase == RegionPhase.EDITING
        assert r.prompt == ""

    def test_cancel_after_failed_regenerate_restores_rendering(self, lifecycle, dispatcher, region, store, sandbox):
        _render(lifecycle, dispatcher, region.id)
        lifecycle.regenerate(region.id)
        dispatcher.fail(CollaboratorUnavailable("timeout"))
        assert store.get(region.id).phase == RegionPhase.ERROR

        lifecycle.cancel(region.id)
        r = store.get(region.id)
        assert r.phase == RegionPhase.RENDERING
        assert r.error is None
        assert sandbox.is_attached(region.id)

    def test_edit_only_from_rendering_or_generating(self, lifecycle, region):
        assert not lifecycle.edit(region.id)

    def test_edit_while_generating_drops_response(self, lifecycle, dispatcher, region, store):
        lifecycle.set_prompt(region.id, "first try")
        lifecycle.submit(region.id)
        assert lifecycle.edit(region.id)
        dispatcher.reply(STATIC)
        r = store.get(region.id)
        assert r.phase == RegionPhase.EDITING
        assert r.program is None


# ─────────────────────────────────────────────────────────
# Stale responses / delete
# ─────────────────────────────────────────────────────────


class TestStaleAndDelete:
    def test_delete_drops_inflight_response(self, lifecycle, dispatcher, region, store, sandbox):
        lifecycle.set_prompt(region.id, "spiral")
        lifecycle.submit(region.id)
        assert lifecycle.delete(region.id)
        dispatcher.reply(STATIC)
        assert region.id not in store
        assert not sandbox.is_attached(region.id)

    def test_delete_tears_down_animation(self, lifecycle, dispatcher, region, sandbox, frames):
        _render(lifecycle, dispatcher, region.id, raw=ANIMATED)
        assert frames.pending
        lifecycle.delete(region.id)
        assert frames.pending == {}
        assert not sandbox.is_attached(region.id)

    def test_only_latest_response_counts(self, lifecycle, dispatcher, region, store):
        _render(lifecycle, dispatcher, region.id)
        lifecycle.regenerate(region.id)
        lifecycle.edit(region.id)
        lifecycle.submit(region.id)
        # The response to the abandoned second request arrives late
        dispatcher.reply(marker_response("x = 1 / 0"), index=1)
        assert store.get(region.id).phase == RegionPhase.GENERATING
        dispatcher.reply(STATIC, index=2)
        assert store.get(region.id).phase == RegionPhase.RENDERING

    def test_regions_are_independent(self, lifecycle, dispatcher, store):
        a = store.create(0, 0, 100, 100)
        b = store.create(200, 0, 100, 100)
        lifecycle.set_prompt(a.id, "a")
        lifecycle.set_prompt(b.id, "b")
        lifecycle.submit(a.id)
        lifecycle.submit(b.id)
        dispatcher.fail(CollaboratorUnavailable("down"), index=0)
        dispatcher.reply(STATIC, index=1)
        assert store.get(a.id).phase == RegionPhase.ERROR
        assert store.get(b.id).phase == RegionPhase.RENDERING


# ─────────────────────────────────────────────────────────
# Resize while rendering
# ─────────────────────────────────────────────────────────


class TestResize:
    def test_resize_reattaches_before_next_frame(self, lifecycle, dispatcher, region, store, sandbox, frames):
        _render(lifecycle, dispatcher, region.id, raw=ANIMATED)
        old_surface = sandbox.surface_for(region.id)
        old_token = sandbox.pending_frame(region.id)

        store.update(region.id, width=320, height=240)

        new_surface = sandbox.surface_for(region.id)
        assert new_surface is not old_surface
        assert old_surface.disposed
        assert (new_surface.width, new_surface.height) == (320, 240)
        assert old_token in frames.cancelled
        assert old_token not in frames.pending
        assert new_surface.render_count == 1
        assert len(frames.pending) == 1

        old_callback = frames.history[old_token]
        old_callback()
        assert new_surface.render_count == 1

    def test_move_does_not_rerender(self, lifecycle, dispatcher, region, store, sandbox):
        _render(lifecycle, dispatcher, region.id)
        surface = sandbox.surface_for(region.id)
        store.update(region.id, x=400, y=300)
        assert sandbox.surface_for(region.id) is surface

    def test_resize_while_editing_keeps_detached(self, lifecycle, dispatcher, region, store, sandbox):
        _render(lifecycle, dispatcher, region.id)
        lifecycle.edit(region.id)
        store.update(region.id, width=300)
        assert not sandbox.is_attached(region.id)


def test_describe_error_labels():
    assert describe_error(MalformedResponse("x")) == "Malformed response: x"
    assert describe_error(UnsafeOrEmptyProgram("")) == "Program rejected"
