"""
canvas/view.py

QGraphicsView for the workspace with wheel zoom.
"""

from __future__ import annotations

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QPainter
from PyQt6.QtWidgets import QGraphicsView

from canvas.scene import WorkspaceScene
from settings import get_settings


def _get_wheel_factor() -> float:
    """Get zoom step from settings. Default: 1.15 (15% per scroll step)."""
    return get_settings().settings.canvas.zoom.wheel_factor


class WorkspaceView(QGraphicsView):
    """Graphics view showing the workspace scene.

    The mouse wheel zooms around the cursor; Ctrl is not required since
    the canvas has a fixed size and scroll bars handle panning.
    """

    def __init__(self, scene: WorkspaceScene, parent=None):
        super().__init__(scene, parent)
        self.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        self.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
        self.setDragMode(QGraphicsView.DragMode.NoDrag)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.AnchorUnderMouse)
        self.setViewportUpdateMode(QGraphicsView.ViewportUpdateMode.FullViewportUpdate)
        self.setMouseTracking(True)

    def wheelEvent(self, event):
        """Zoom with mouse wheel."""
        delta = event.angleDelta().y()
        if delta == 0:
            super().wheelEvent(event)
            return
        factor = _get_wheel_factor() if delta > 0 else 1 / _get_wheel_factor()
        self.scale(factor, factor)
        event.accept()

    def zoom_fit(self):
        """Zoom to fit the whole canvas in the view."""
        scene_rect = self.scene().sceneRect()
        if not scene_rect.isNull() and not scene_rect.isEmpty():
            self.fitInView(scene_rect, Qt.AspectRatioMode.KeepAspectRatio)

    def zoom_reset(self):
        """Reset zoom to 100% (1:1 scale)."""
        self.resetTransform()

    def zoom_in(self):
        """Zoom in by the configured factor."""
        f = _get_wheel_factor()
        self.scale(f, f)

    def zoom_out(self):
        """Zoom out by the configured factor."""
        f = _get_wheel_factor()
        self.scale(1 / f, 1 / f)
