"""
canvas/items.py

Graphics items for regions: the framed region with its drag bar, resize
handle, buttons, prompt editor and rendered surface image.
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import Qt, QPointF, QRectF, pyqtSignal
from PyQt6.QtGui import QBrush, QColor, QFont, QImage, QPainter, QPen, QPolygonF
from PyQt6.QtWidgets import (
    QGraphicsItem,
    QGraphicsProxyWidget,
    QGraphicsRectItem,
    QPlainTextEdit,
)

from debug_trace import trace
from models import Region, RegionPhase
from settings import get_settings

BUTTON_DELETE = "delete"
BUTTON_EDIT = "edit"

# Padding between the frame and the prompt editor
_EDITOR_PADDING = 8.0


def _get_drag_bar_height() -> float:
    """Get drag bar height from settings. Default: 20.0 pixels."""
    return get_settings().settings.canvas.handles.drag_bar_height


def _get_resize_handle_size() -> float:
    """Get resize handle size from settings. Default: 20.0 pixels."""
    return get_settings().settings.canvas.handles.resize_handle_size


class PromptEditor(QPlainTextEdit):
    """
    Multi-line prompt input.

    Signals:
        submitted(): Enter pressed without Shift
        cancelled(): Escape pressed
    """

    submitted = pyqtSignal()
    cancelled = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setPlaceholderText("Describe a visualization and press Enter")
        self.setTabChangesFocus(True)

    def keyPressEvent(self, event):
        key = event.key()
        if key in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
            if event.modifiers() & Qt.KeyboardModifier.ShiftModifier:
                self.insertPlainText("\n")
            else:
                self.submitted.emit()
            event.accept()
            return
        if key == Qt.Key.Key_Escape:
            self.cancelled.emit()
            event.accept()
            return
        super().keyPressEvent(event)


class RegionItem(QGraphicsRectItem):
    """Visual representation of one Region.

    The item mirrors the region's geometry and phase; it never mutates the
    store itself. The scene decides what pointer presses mean and the
    prompt editor is wired to the lifecycle controller by the scene.
    """

    def __init__(self, region: Region):
        super().__init__(QRectF(0, 0, region.width, region.height))
        self.region_id = region.id
        self.setAcceptHoverEvents(True)
        self.setFlag(QGraphicsItem.GraphicsItemFlag.ItemClipsChildrenToShape, True)

        self._hovered = False
        self._phase = region.phase
        self._error: Optional[str] = None
        self._image: Optional[QImage] = None

        self.editor = PromptEditor()
        self._proxy = QGraphicsProxyWidget(self)
        self._proxy.setWidget(self.editor)

        self.sync(region)

    # ------------------------------------------------------------------
    # Model sync
    # ------------------------------------------------------------------

    def sync(self, region: Region) -> None:
        """Refresh geometry, phase, error text and prompt from the model."""
        if self.pos() != QPointF(region.x, region.y):
            self.setPos(QPointF(region.x, region.y))
        if self.rect().width() != region.width or self.rect().height() != region.height:
            self.prepareGeometryChange()
            self.setRect(QRectF(0, 0, region.width, region.height))

        self._phase = region.phase
        self._error = region.error if region.phase == RegionPhase.ERROR else None
        if region.phase != RegionPhase.RENDERING:
            self._image = None

        if self.editor.toPlainText() != region.prompt:
            self.editor.blockSignals(True)
            self.editor.setPlainText(region.prompt)
            self.editor.blockSignals(False)

        editable = region.is_editable
        self._proxy.setVisible(editable)
        self._layout_editor()
        self.update()

    def _layout_editor(self) -> None:
        r = self.rect()
        top = _get_drag_bar_height() + _EDITOR_PADDING
        if self._error:
            top += self._error_height()
        bottom_pad = _get_resize_handle_size()
        w = max(10.0, r.width() - 2 * _EDITOR_PADDING)
        h = max(10.0, r.height() - top - bottom_pad)
        self._proxy.setPos(_EDITOR_PADDING, top)
        self._proxy.resize(w, h)

    def _error_height(self) -> float:
        return 36.0

    def set_image(self, image: Optional[QImage]) -> None:
        """Show the latest rendered surface."""
        self._image = image
        self.update()

    @property
    def image(self) -> Optional[QImage]:
        return self._image

    def focus_editor(self) -> None:
        if self._proxy.isVisible():
            self.editor.setFocus()

    # ------------------------------------------------------------------
    # Buttons
    # ------------------------------------------------------------------

    def _button_rects(self):
        bar = _get_drag_bar_height()
        r = self.rect()
        size = bar
        rects = {BUTTON_DELETE: QRectF(r.right() - size, 0, size, size)}
        if self._phase == RegionPhase.RENDERING:
            rects[BUTTON_EDIT] = QRectF(r.right() - 2 * size - 4, 0, size, size)
        return rects

    def button_at(self, local: QPointF) -> Optional[str]:
        """Return the drag-bar button under a point in item coordinates."""
        for name, rect in self._button_rects().items():
            if rect.contains(local):
                return name
        return None

    # ------------------------------------------------------------------
    # Hover
    # ------------------------------------------------------------------

    def hoverEnterEvent(self, event):
        self._hovered = True
        self.update()
        super().hoverEnterEvent(event)

    def hoverLeaveEvent(self, event):
        self._hovered = False
        self.update()
        super().hoverLeaveEvent(event)

    # ------------------------------------------------------------------
    # Painting
    # ------------------------------------------------------------------

    def paint(self, painter: QPainter, option, widget=None):
        s = get_settings().settings.canvas
        r = self.rect()

        painter.setPen(QPen(QColor(s.handles.border_color), 1))
        painter.setBrush(QBrush(QColor(s.handles.fill_color)))
        painter.drawRect(r)

        if self._phase == RegionPhase.RENDERING and self._image is not None:
            painter.drawImage(r, self._image)
        elif self._phase == RegionPhase.GENERATING:
            painter.setPen(QColor("#555555"))
            painter.drawText(r, Qt.AlignmentFlag.AlignCenter, "Loading...")

        if self._error:
            bar = s.handles.drag_bar_height
            err_rect = QRectF(_EDITOR_PADDING, bar + 2, r.width() - 2 * _EDITOR_PADDING, self._error_height())
            painter.setPen(QColor(s.error_color))
            painter.drawText(err_rect, Qt.TextFlag.TextWordWrap, self._error)

        if self._hovered or self._phase != RegionPhase.RENDERING:
            self._paint_drag_bar(painter, r)
        self._paint_resize_handle(painter, r)

    def _paint_drag_bar(self, painter: QPainter, r: QRectF) -> None:
        s = get_settings().settings.canvas.handles
        bar = QRectF(r.left(), r.top(), r.width(), s.drag_bar_height)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QColor(s.drag_bar_color))
        painter.drawRect(bar)

        font = QFont(painter.font())
        font.setBold(True)
        painter.setFont(font)
        painter.setPen(QColor(s.border_color))
        labels = {BUTTON_DELETE: "×", BUTTON_EDIT: "✎"}
        for name, rect in self._button_rects().items():
            painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, labels[name])

    def _paint_resize_handle(self, painter: QPainter, r: QRectF) -> None:
        s = get_settings().settings.canvas.handles
        size = s.resize_handle_size
        tri = QPolygonF([
            QPointF(r.right(), r.bottom() - size),
            QPointF(r.right(), r.bottom()),
            QPointF(r.right() - size, r.bottom()),
        ])
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QColor(s.border_color))
        painter.drawPolygon(tri)
        trace(f"painted {self.region_id}", "FRAME")
