"""
settings.py

Persistent settings management for PromptCanvas.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/promptcanvas/settings.toml
    - macOS: ~/Library/Application Support/promptcanvas/settings.toml
    - Linux: ~/.config/promptcanvas/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

APP_NAME = "promptcanvas"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


def set_settings(manager: Optional["SettingsManager"]) -> None:
    """Replace the global settings manager (None resets to lazy default)."""
    global _settings_manager
    _settings_manager = manager


# =============================================================================
# Canvas Settings
# =============================================================================

@dataclass
class CanvasHandleSettings:
    """Region handle settings.

    Defaults:
        drag_bar_height: 20.0
        resize_handle_size: 20.0
        border_color: "#000000"
        fill_color: "#FFFFFF"
        drag_bar_color: "#F0F0F0"
    """
    drag_bar_height: float = 20.0      # Default: 20.0 pixels
    resize_handle_size: float = 20.0   # Default: 20.0 pixels
    border_color: str = "#000000"      # Default: black
    fill_color: str = "#FFFFFF"        # Default: white
    drag_bar_color: str = "#F0F0F0"    # Default: light gray


@dataclass
class CanvasZoomSettings:
    """Zoom behavior settings.

    Defaults:
        wheel_factor: 1.15
    """
    wheel_factor: float = 1.15  # Default: 1.15 (15% per scroll step)


@dataclass
class CanvasSettings:
    """All canvas-related settings.

    Defaults:
        width: 1600.0
        height: 1000.0
        min_region_size: 100.0
        min_draw_distance: 10.0
        background_color: "#F0F0F0"
        preview_color: "#000000"
        error_color: "#C0392B"
    """
    width: float = 1600.0              # Default: 1600.0 units
    height: float = 1000.0             # Default: 1000.0 units
    min_region_size: float = 100.0     # Default: 100.0 units
    min_draw_distance: float = 10.0    # Default: 10.0 units
    background_color: str = "#F0F0F0"  # Default: light gray
    preview_color: str = "#000000"     # Default: black
    error_color: str = "#C0392B"       # Default: red
    handles: CanvasHandleSettings = field(default_factory=CanvasHandleSettings)
    zoom: CanvasZoomSettings = field(default_factory=CanvasZoomSettings)


# =============================================================================
# Codegen Settings
# =============================================================================

@dataclass
class CodegenSettings:
    """Model request settings.

    Defaults:
        model: "gemini-2.5-flash"
        temperature: 0.7
        max_output_tokens: 1500
        api_key_env: "GOOGLE_API_KEY"
        response_protocol: "markers"
    """
    model: str = "gemini-2.5-flash"      # Default: "gemini-2.5-flash"
    temperature: float = 0.7             # Default: 0.7
    max_output_tokens: int = 1500        # Default: 1500 tokens
    api_key_env: str = "GOOGLE_API_KEY"  # Default: "GOOGLE_API_KEY"
    response_protocol: str = "markers"   # Default: "markers" (markers | bare)


# =============================================================================
# Sandbox Settings
# =============================================================================

@dataclass
class SandboxSettings:
    """Generated program execution settings.

    Defaults:
        frame_interval_ms: 16
        max_program_chars: 20000
    """
    frame_interval_ms: int = 16         # Default: 16 ms (~60 fps)
    max_program_chars: int = 20000      # Default: 20000 characters


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        theme: The UI theme name (must match a key in styles.STYLES).
        log_level: Root logging level name.
        debug_trace: Whether trace() output is emitted.
        log_file: Optional log file path (empty = stderr only).
        canvas: Canvas-related settings.
        codegen: Model request settings.
        sandbox: Program execution settings.
    """
    # UI Settings
    theme: str = "Light"  # Default: "Light"

    # Logging
    log_level: str = "INFO"     # Default: "INFO"
    debug_trace: bool = False   # Default: False
    log_file: str = ""          # Default: "" (stderr only)

    # Nested settings categories
    canvas: CanvasSettings = field(default_factory=CanvasSettings)
    codegen: CodegenSettings = field(default_factory=CodegenSettings)
    sandbox: SandboxSettings = field(default_factory=SandboxSettings)


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Explicit directory overriding the platform location.
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Union[str, Path]] = None):
        if settings_dir is None:
            self.settings_dir = Path(platformdirs.user_config_dir(app_name))
        else:
            self.settings_dir = Path(settings_dir)
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)

            return self._parse_toml(data)
        except (OSError, tomllib.TOMLDecodeError, AttributeError, TypeError):
            # If file is corrupted or invalid, return defaults
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        # General section
        general = data.get("general", {})
        settings.theme = general.get("theme", settings.theme)
        settings.log_level = general.get("log_level", settings.log_level)
        settings.debug_trace = general.get("debug_trace", settings.debug_trace)
        settings.log_file = general.get("log_file", settings.log_file)

        # Canvas section
        canvas = data.get("canvas", {})
        c = settings.canvas
        c.width = canvas.get("width", c.width)
        c.height = canvas.get("height", c.height)
        c.min_region_size = canvas.get("min_region_size", c.min_region_size)
        c.min_draw_distance = canvas.get("min_draw_distance", c.min_draw_distance)
        c.background_color = canvas.get("background_color", c.background_color)
        c.preview_color = canvas.get("preview_color", c.preview_color)
        c.error_color = canvas.get("error_color", c.error_color)
        if "handles" in canvas:
            h = canvas["handles"]
            c.handles.drag_bar_height = h.get("drag_bar_height", c.handles.drag_bar_height)
            c.handles.resize_handle_size = h.get("resize_handle_size", c.handles.resize_handle_size)
            c.handles.border_color = h.get("border_color", c.handles.border_color)
            c.handles.fill_color = h.get("fill_color", c.handles.fill_color)
            c.handles.drag_bar_color = h.get("drag_bar_color", c.handles.drag_bar_color)
        if "zoom" in canvas:
            zm = canvas["zoom"]
            c.zoom.wheel_factor = zm.get("wheel_factor", c.zoom.wheel_factor)

        # Codegen section
        codegen = data.get("codegen", {})
        g = settings.codegen
        g.model = codegen.get("model", g.model)
        g.temperature = codegen.get("temperature", g.temperature)
        g.max_output_tokens = codegen.get("max_output_tokens", g.max_output_tokens)
        g.api_key_env = codegen.get("api_key_env", g.api_key_env)
        g.response_protocol = codegen.get("response_protocol", g.response_protocol)

        # Sandbox section
        sandbox = data.get("sandbox", {})
        sb = settings.sandbox
        sb.frame_interval_ms = sandbox.get("frame_interval_ms", sb.frame_interval_ms)
        sb.max_program_chars = sandbox.get("max_program_chars", sb.max_program_chars)

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        # Ensure directory exists
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        # Convert settings to TOML structure
        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "general": {
                "theme": s.theme,
                "log_level": s.log_level,
                "debug_trace": s.debug_trace,
                "log_file": s.log_file,
            },
            "canvas": {
                "width": s.canvas.width,
                "height": s.canvas.height,
                "min_region_size": s.canvas.min_region_size,
                "min_draw_distance": s.canvas.min_draw_distance,
                "background_color": s.canvas.background_color,
                "preview_color": s.canvas.preview_color,
                "error_color": s.canvas.error_color,
                "handles": {
                    "drag_bar_height": s.canvas.handles.drag_bar_height,
                    "resize_handle_size": s.canvas.handles.resize_handle_size,
                    "border_color": s.canvas.handles.border_color,
                    "fill_color": s.canvas.handles.fill_color,
                    "drag_bar_color": s.canvas.handles.drag_bar_color,
                },
                "zoom": {
                    "wheel_factor": s.canvas.zoom.wheel_factor,
                },
            },
            "codegen": {
                "model": s.codegen.model,
                "temperature": s.codegen.temperature,
                "max_output_tokens": s.codegen.max_output_tokens,
                "api_key_env": s.codegen.api_key_env,
                "response_protocol": s.codegen.response_protocol,
            },
            "sandbox": {
                "frame_interval_ms": s.sandbox.frame_interval_ms,
                "max_program_chars": s.sandbox.max_program_chars,
            },
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        data = self._to_toml_dict()
        return tomli_w.dumps(data)

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
