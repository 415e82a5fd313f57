"""
canvas/scene.py

QGraphicsScene for the workspace. Routes pointer and key events into the
gesture controllers and the lifecycle controller, and keeps one
RegionItem per region in sync with the store.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from PyQt6.QtCore import Qt, QRectF
from PyQt6.QtGui import QBrush, QColor, QImage, QPen
from PyQt6.QtWidgets import QGraphicsRectItem, QGraphicsScene

from canvas.geometry import ZONE_BODY, ZONE_DRAG, ZONE_RESIZE, hit_zone, map_to_canvas
from canvas.gestures import DragController, DrawGestureController, ResizeController
from canvas.items import BUTTON_DELETE, BUTTON_EDIT, RegionItem
from canvas.store import CHANGE_CREATED, CHANGE_REMOVED, RegionChange, RegionStore
from lifecycle import RegionLifecycleController
from settings import get_settings

log = logging.getLogger(__name__)


class WorkspaceScene(QGraphicsScene):
    """
    Graphics scene hosting all regions.

    Pointer presses on empty canvas start a draw gesture; presses on a
    region's drag bar or resize handle start a drag/resize session; presses
    inside a region body go to the region's prompt editor.
    """

    def __init__(self, store: RegionStore, lifecycle: RegionLifecycleController, parent=None):
        super().__init__(parent)
        s = get_settings().settings.canvas
        self.setSceneRect(QRectF(0, 0, s.width, s.height))
        self.setBackgroundBrush(QBrush(QColor(s.background_color)))

        self.store = store
        self.lifecycle = lifecycle
        self.draw_controller = DrawGestureController(store)
        self.drag_controller = DragController(store)
        self.resize_controller = ResizeController(store)

        self._items: Dict[str, RegionItem] = {}
        self._active_drag: Optional[str] = None
        self._active_resize: Optional[str] = None

        self._preview = QGraphicsRectItem()
        pen = QPen(QColor(s.preview_color), 1, Qt.PenStyle.DashLine)
        self._preview.setPen(pen)
        self._preview.setBrush(QBrush(Qt.BrushStyle.NoBrush))
        self._preview.setZValue(1e9)
        self._preview.setVisible(False)
        self.addItem(self._preview)

        self._unsubscribe = store.subscribe(self._on_store_change)
        lifecycle.on_changed(self._on_region_changed)
        lifecycle.sandbox.on_flush = self._on_surface_flushed

        for region in store.list():
            self._add_item(region.id)

    # ------------------------------------------------------------------
    # Item bookkeeping
    # ------------------------------------------------------------------

    def item_for(self, region_id: str) -> Optional[RegionItem]:
        return self._items.get(region_id)

    def _add_item(self, region_id: str) -> None:
        region = self.store.get(region_id)
        item = RegionItem(region)
        item.setZValue(self.store.index_of(region_id))
        item.editor.textChanged.connect(
            lambda rid=region_id, ed=item.editor: self.lifecycle.set_prompt(rid, ed.toPlainText())
        )
        item.editor.submitted.connect(lambda rid=region_id: self.lifecycle.submit(rid))
        item.editor.cancelled.connect(lambda rid=region_id: self.lifecycle.cancel(rid))
        self._items[region_id] = item
        self.addItem(item)
        item.focus_editor()

    def _on_store_change(self, change: RegionChange) -> None:
        if change.kind == CHANGE_CREATED:
            self._add_item(change.region_id)
            return
        if change.kind == CHANGE_REMOVED:
            item = self._items.pop(change.region_id, None)
            if item is not None:
                self.removeItem(item)
            return
        item = self._items.get(change.region_id)
        region = self.store.get(change.region_id)
        if item is not None and region is not None:
            item.sync(region)

    def _on_region_changed(self, region_id: str) -> None:
        item = self._items.get(region_id)
        region = self.store.get(region_id)
        if item is not None and region is not None:
            item.sync(region)
            item.focus_editor()

    def _on_surface_flushed(self, region_id: str, image: QImage) -> None:
        item = self._items.get(region_id)
        if item is not None:
            item.set_image(image)

    # ------------------------------------------------------------------
    # Pointer routing
    # ------------------------------------------------------------------

    def _canvas_point(self, event):
        sp = event.scenePos()
        r = self.sceneRect()
        return map_to_canvas(sp.x(), sp.y(), r.width(), r.height())

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            super().mousePressEvent(event)
            return

        x, y = self._canvas_point(event)
        region = self.store.region_at(x, y)
        if region is None:
            self.setFocusItem(None)
            self.draw_controller.pointer_down(x, y)
            self._preview.setRect(QRectF(x, y, 0, 0))
            self._preview.setVisible(True)
            event.accept()
            return

        s = get_settings().settings.canvas.handles
        zone = hit_zone(region.rect, x, y, s.drag_bar_height, s.resize_handle_size)
        if zone == ZONE_RESIZE:
            self.resize_controller.begin(region.id, x, y)
            self._active_resize = region.id
            event.accept()
            return
        if zone == ZONE_DRAG:
            item = self._items.get(region.id)
            button = item.button_at(item.mapFromScene(event.scenePos())) if item else None
            if button == BUTTON_DELETE:
                self.lifecycle.delete(region.id)
            elif button == BUTTON_EDIT:
                self.lifecycle.edit(region.id)
            else:
                self.drag_controller.begin(region.id, x, y)
                self._active_drag = region.id
            event.accept()
            return
        if zone == ZONE_BODY:
            super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        x, y = self._canvas_point(event)
        if self.draw_controller.is_drawing:
            rect = self.draw_controller.pointer_move(x, y)
            self._preview.setRect(QRectF(rect.x, rect.y, rect.width, rect.height))
            event.accept()
            return
        if self._active_resize is not None:
            self.resize_controller.move(self._active_resize, x, y)
            event.accept()
            return
        if self._active_drag is not None:
            self.drag_controller.move(self._active_drag, x, y)
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        x, y = self._canvas_point(event)
        if self.draw_controller.is_drawing:
            self._preview.setVisible(False)
            region = self.draw_controller.pointer_up(x, y)
            if region is not None:
                log.info("Created region %s", region.id)
            event.accept()
            return
        if self._active_resize is not None:
            self.resize_controller.end(self._active_resize)
            self._active_resize = None
            event.accept()
            return
        if self._active_drag is not None:
            self.drag_controller.end(self._active_drag)
            self._active_drag = None
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def keyPressEvent(self, event):
        if event.key() == Qt.Key.Key_Escape and self.draw_controller.is_drawing:
            self.draw_controller.cancel()
            self._preview.setVisible(False)
            event.accept()
            return
        super().keyPressEvent(event)

    def shutdown(self) -> None:
        self._unsubscribe()
        self.lifecycle.sandbox.on_flush = None
