"""Tests that the workspace scene mirrors the store and lifecycle."""
from __future__ import annotations

import pytest
from PyQt6.QtCore import QPointF

from canvas.items import BUTTON_DELETE, BUTTON_EDIT
from canvas.scene import WorkspaceScene
from canvas.store import RegionStore
from conftest import marker_response
from lifecycle import RegionLifecycleController
from models import RegionPhase
from sandbox.executor import ExecutionSandbox


@pytest.fixture()
def store():
    return RegionStore()


@pytest.fixture()
def scene(qapp, store, frames, dispatcher):
    lifecycle = RegionLifecycleController(store, ExecutionSandbox(frames), dispatcher)
    scene = WorkspaceScene(store, lifecycle)
    yield scene
    scene.shutdown()
    lifecycle.shutdown()


def test_item_follows_region(scene, store):
    region = store.create(40, 60, 200, 150)
    item = scene.item_for(region.id)
    assert item is not None
    assert (item.pos().x(), item.pos().y()) == (40, 60)

    store.update(region.id, x=100, width=260)
    assert item.pos().x() == 100
    assert item.rect().width() == 260

    store.remove(region.id)
    assert scene.item_for(region.id) is None
    assert item.scene() is None


def test_editor_text_reaches_store(scene, store):
    region = store.create(0, 0, 200, 150)
    scene.item_for(region.id).editor.setPlainText("a sine wave")
    assert store.get(region.id).prompt == "a sine wave"


def test_editor_submit_dispatches(scene, store, dispatcher):
    region = store.create(0, 0, 200, 150)
    item = scene.item_for(region.id)
    item.editor.setPlainText("three circles")
    item.editor.submitted.emit()
    assert dispatcher.prompts == ["three circles"]
    assert store.get(region.id).phase == RegionPhase.GENERATING


def test_rendered_image_shown(scene, store, dispatcher):
    region = store.create(0, 0, 200, 150)
    item = scene.item_for(region.id)
    item.editor.setPlainText("blue square")
    item.editor.submitted.emit()
    dispatcher.reply(marker_response('surface.add(draw.Rect(width=50, height=50, fill="blue"))'))
    assert item.image is not None
    assert (item.image.width(), item.image.height()) == (200, 150)


def test_buttons_depend_on_phase(scene, store, dispatcher):
    region = store.create(0, 0, 200, 150)
    item = scene.item_for(region.id)
    edit_point = QPointF(200 - 20 * 2 - 4 + 5, 5)
    assert item.button_at(QPointF(195, 5)) == BUTTON_DELETE
    assert item.button_at(edit_point) is None

    item.editor.setPlainText("red dot")
    item.editor.submitted.emit()
    dispatcher.reply(marker_response("surface.add(draw.Circle(radius=4))"))
    assert item.button_at(edit_point) == BUTTON_EDIT
