"""
debug_trace.py

Logging setup and debug instrumentation for tracking down crashes.

Enable trace output with ``general.debug_trace = true`` in settings.toml.
"""

import logging
import sys
from typing import Optional

# Set to True to enable debug tracing (overridden by setup_logging)
DEBUG_TRACE = False

# Set to True to trace animation frame events (very verbose)
TRACE_FRAMES = False

_LOG_FORMAT = "[%(asctime)s.%(msecs)03d] [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%H:%M:%S"

_trace_logger = logging.getLogger("promptcanvas.trace")
_file_handler: Optional[logging.Handler] = None


def setup_logging(level: str = "INFO", log_file: str = "", debug_trace: bool = False) -> None:
    """Configure root logging for the application.

    Args:
        level: Root level name ("DEBUG", "INFO", ...).
        log_file: Optional path of a log file written alongside stderr.
        debug_trace: Enable trace() output.
    """
    global DEBUG_TRACE, _file_handler
    DEBUG_TRACE = debug_trace

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not any(getattr(h, "_promptcanvas", False) for h in root.handlers):
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
        stream._promptcanvas = True
        root.addHandler(stream)

    if log_file and _file_handler is None:
        try:
            _file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        except OSError as e:
            root.warning("Cannot open log file %s: %s", log_file, e)
        else:
            _file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
            root.addHandler(_file_handler)

    _trace_logger.setLevel(logging.DEBUG if debug_trace else logging.INFO)


def trace(msg: str, category: str = "INFO"):
    """Emit a trace message tagged with a category.

    ERROR and CRASH messages are always logged; the rest need debug tracing.
    """
    if category in ("ERROR", "CRASH"):
        _trace_logger.error("[%s] %s", category, msg)
        return
    if not DEBUG_TRACE:
        return
    if category == "FRAME" and not TRACE_FRAMES:
        return
    _trace_logger.debug("[%s] %s", category, msg)


def trace_exception(msg: str = "Exception"):
    """Log the active exception with its traceback."""
    _trace_logger.exception(msg)


def close_log():
    """Flush and detach the log file handler."""
    global _file_handler
    if _file_handler is not None:
        logging.getLogger().removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
