"""
main.py

PromptCanvas - Main Application

PyQt6 workspace where the user draws rectangular regions and fills each
one with a visualization generated from a natural-language prompt:
- Draw regions on empty canvas, drag them by the top bar, resize from the
  bottom-right handle
- Type a prompt and press Enter to generate a program with Gemini
- Programs render (and animate) inside their own region only

Usage:
    python main.py

Dependencies:
    pip install PyQt6 google-genai platformdirs tomli-w

Environment:
    GOOGLE_API_KEY=... (required for code generation)
"""

from __future__ import annotations

import sys
import traceback

from PyQt6.QtCore import QSize
from PyQt6.QtGui import QAction, QActionGroup, QKeySequence
from PyQt6.QtWidgets import QApplication, QLabel, QMainWindow, QToolBar

from canvas.scene import WorkspaceScene
from canvas.store import RegionStore
from canvas.view import WorkspaceView
from codegen.client import GeminiCodegenClient
from codegen.worker import ThreadedDispatcher
from debug_trace import close_log, setup_logging, trace, trace_exception
from lifecycle import RegionLifecycleController
from models import RegionPhase
from sandbox.executor import ExecutionSandbox
from sandbox.frames import QtFrameScheduler
from settings import SettingsManager, get_settings
from styles import DEFAULT_STYLE, STYLES


class MainWindow(QMainWindow):
    """Main application window for the PromptCanvas workspace.

    Args:
        settings_manager: The SettingsManager instance for application settings.
    """

    def __init__(self, settings_manager: SettingsManager):
        super().__init__()
        self.settings_manager = settings_manager
        self.setWindowTitle("PromptCanvas - Prompt-Driven Canvas Visualizations")

        # Core: store -> sandbox -> codegen -> lifecycle
        self.store = RegionStore()
        self.frame_scheduler = QtFrameScheduler(parent=self)
        self.sandbox = ExecutionSandbox(self.frame_scheduler)
        self.client = GeminiCodegenClient()
        self.dispatcher = ThreadedDispatcher(self.client, parent=self)
        self.lifecycle = RegionLifecycleController(self.store, self.sandbox, self.dispatcher)

        # Scene and view
        self.scene = WorkspaceScene(self.store, self.lifecycle, parent=self)
        self.view = WorkspaceView(self.scene)
        self.setCentralWidget(self.view)

        self._build_menus()
        self._build_toolbar()

        self._status_label = QLabel()
        self.statusBar().addPermanentWidget(self._status_label)
        self.store.subscribe(lambda _change: self._update_status())
        self.lifecycle.on_changed(self._on_region_changed)
        self._update_status()
        self.statusBar().showMessage("Drag on the canvas to draw a region", 5000)

    def _build_menus(self):
        """Build the application menu bar."""
        menubar = self.menuBar()

        # File menu
        file_menu = menubar.addMenu("&File")

        clear_act = QAction("Clear All Regions", self)
        clear_act.triggered.connect(self.clear_regions)
        file_menu.addAction(clear_act)

        file_menu.addSeparator()

        exit_act = QAction("E&xit", self)
        exit_act.setShortcut(QKeySequence.StandardKey.Quit)
        exit_act.triggered.connect(self.close)
        file_menu.addAction(exit_act)

        # View menu
        view_menu = menubar.addMenu("&View")

        self.zoom_in_act = QAction("Zoom In", self)
        self.zoom_in_act.setShortcut(QKeySequence.StandardKey.ZoomIn)
        self.zoom_in_act.triggered.connect(lambda: self.view.zoom_in())
        view_menu.addAction(self.zoom_in_act)

        self.zoom_out_act = QAction("Zoom Out", self)
        self.zoom_out_act.setShortcut(QKeySequence.StandardKey.ZoomOut)
        self.zoom_out_act.triggered.connect(lambda: self.view.zoom_out())
        view_menu.addAction(self.zoom_out_act)

        view_menu.addSeparator()

        self.zoom_fit_act = QAction("Zoom to Fit", self)
        self.zoom_fit_act.setShortcut("Ctrl+F")
        self.zoom_fit_act.triggered.connect(lambda: self.view.zoom_fit())
        view_menu.addAction(self.zoom_fit_act)

        self.zoom_reset_act = QAction("Zoom 100%", self)
        self.zoom_reset_act.setShortcut("Ctrl+0")
        self.zoom_reset_act.triggered.connect(lambda: self.view.zoom_reset())
        view_menu.addAction(self.zoom_reset_act)

        view_menu.addSeparator()

        theme_menu = view_menu.addMenu("Theme")
        group = QActionGroup(self)
        current = self.settings_manager.settings.theme
        for name in STYLES:
            act = QAction(name, self)
            act.setCheckable(True)
            act.setChecked(name == current)
            act.triggered.connect(lambda checked, n=name: self.apply_theme(n))
            group.addAction(act)
            theme_menu.addAction(act)

    def _build_toolbar(self):
        """Build the application toolbar."""
        tb = QToolBar("View")
        tb.setIconSize(QSize(18, 18))
        tb.setMovable(False)
        self.addToolBar(tb)
        tb.addAction(self.zoom_in_act)
        tb.addAction(self.zoom_out_act)
        tb.addAction(self.zoom_fit_act)
        tb.addAction(self.zoom_reset_act)

    def apply_theme(self, name: str) -> None:
        """Switch the application stylesheet and remember the choice."""
        if name not in STYLES:
            return
        QApplication.instance().setStyleSheet(STYLES[name])
        self.settings_manager.settings.theme = name
        trace(f"Theme changed to {name}", "MAIN")

    def clear_regions(self) -> None:
        for region in self.store.list():
            self.lifecycle.delete(region.id)

    def _on_region_changed(self, region_id: str) -> None:
        region = self.store.get(region_id)
        if region is None:
            return
        if region.phase == RegionPhase.ERROR and region.error:
            self.statusBar().showMessage(region.error, 8000)
        elif region.phase == RegionPhase.GENERATING:
            self.statusBar().showMessage("Generating...", 3000)
        self._update_status()

    def _update_status(self) -> None:
        regions = self.store.list()
        busy = sum(1 for r in regions if r.phase == RegionPhase.GENERATING)
        text = f"{len(regions)} region(s)"
        if busy:
            text += f", {busy} generating"
        self._status_label.setText(text)

    def closeEvent(self, event):
        trace("MainWindow closing", "MAIN")
        self.scene.shutdown()
        self.lifecycle.shutdown()
        self.frame_scheduler.cancel_all()
        self.dispatcher.shutdown()
        super().closeEvent(event)


def _excepthook(exc_type, exc_value, exc_tb):
    """Trace uncaught exceptions (including ones escaping Qt slots) before exiting."""
    trace("UNCAUGHT EXCEPTION:", "CRASH")
    trace("".join(traceback.format_exception(exc_type, exc_value, exc_tb)), "CRASH")
    close_log()
    sys.__excepthook__(exc_type, exc_value, exc_tb)


def main():
    """Application entry point."""
    sys.excepthook = _excepthook

    # Load settings (use singleton to ensure single instance)
    settings_manager = get_settings()
    settings_manager.ensure_file_complete()

    s = settings_manager.settings
    setup_logging(s.log_level, s.log_file, s.debug_trace)

    trace("Application starting", "MAIN")
    app = QApplication(sys.argv)

    # Apply saved theme (or default if not set)
    initial_style = s.theme
    if initial_style not in STYLES:
        initial_style = DEFAULT_STYLE
        s.theme = initial_style
    app.setStyleSheet(STYLES[initial_style])

    # Save settings on application quit
    def save_on_quit():
        trace("Saving settings on quit", "MAIN")
        settings_manager.save()
        close_log()

    app.aboutToQuit.connect(save_on_quit)

    trace("Creating MainWindow", "MAIN")
    w = MainWindow(settings_manager)
    w.resize(1550, 980)
    w.show()
    trace("Entering event loop", "MAIN")
    sys.exit(app.exec())


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        close_log()
        raise
