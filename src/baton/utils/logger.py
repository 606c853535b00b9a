"""
Component Logger Framework

Provides colored logging for Baton components with:
- Unified API for the store, classifier, allocator, resolver and loader
- Rich terminal output with component-specific colors
- Graceful fallbacks when configuration is unavailable
- Optional forwarding of important messages as StatusEvents to registered
  event handlers (dashboards, test capture)

Usage:
    logger = get_logger("loader")
    logger.key_info("Loading context for coder_agent")
    logger.info("3 producers requested")
    logger.debug("Detailed trace")
    logger.success("Context loaded")
    logger.warning("Falling back to full detail")   # Logs + emits StatusEvent
    logger.error("Budget exhausted")                # Logs + emits StatusEvent
    logger.timing("Load took 12 ms")

    # Custom loggers with explicit parameters
    logger = get_logger(name="custom_component", color="blue")
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

from baton.utils.config import get_config_value


class ComponentLogger:
    """
    Rich-formatted logger for Baton components with color coding and message hierarchy.

    Message Types:
    - status: High-level status updates (logs + emits automatically)
    - key_info: Important operational information
    - info: Normal operational messages
    - debug: Detailed tracing information
    - warning: Warning messages (logs + emits by default)
    - error: Error messages (logs + emits automatically)
    - success: Success messages
    - timing: Timing information
    """

    def __init__(self, base_logger: logging.Logger, component_name: str, color: str = "white"):
        """
        Initialize component logger.

        Args:
            base_logger: Underlying Python logger
            component_name: Name of the component (e.g., 'store', 'loader')
            color: Rich color name for this component
        """
        self.base_logger = base_logger
        self.component_name = component_name
        self.color = color

    def _emit_status_event(self, message: str, level: str) -> None:
        """Forward a message to registered event handlers as a StatusEvent."""
        try:
            from baton.events.emitter import EventEmitter
            from baton.events.types import StatusEvent

            EventEmitter(self.component_name).emit(StatusEvent(message=message, level=level))
        except Exception as e:
            # Logging must keep working even if an event handler is broken
            self.base_logger.debug(f"Failed to emit status event: {e}")

    def _format_message(self, message: str, style: str, emoji: str = "") -> str:
        """Format message with Rich markup and emoji prefix."""
        prefix = f"{emoji}{self.component_name.title()}: "
        if style:
            return f"[{style}]{prefix}{message}[/{style}]"
        return f"{prefix}{message}"

    def status(self, message: str) -> None:
        """Status update - logs and emits automatically.

        Example:
            logger.status("Loading context from 3 producers...")
        """
        self.key_info(message)
        self._emit_status_event(message, "status")

    def key_info(self, message: str, stream: bool = False) -> None:
        """Important operational information - logs and optionally emits."""
        style = f"bold {self.color}" if self.color != "white" else "bold white"
        self.base_logger.info(self._format_message(message, style))

        if stream:
            self._emit_status_event(message, "key_info")

    def info(self, message: str, stream: bool = False) -> None:
        """Info message - logs always, emits optionally."""
        self.base_logger.info(self._format_message(message, self.color))

        if stream:
            self._emit_status_event(message, "info")

    def debug(self, message: str, stream: bool = False) -> None:
        """Debug message - logs only unless explicitly streamed."""
        style = f"dim {self.color}" if self.color != "white" else "dim white"
        self.base_logger.debug(self._format_message(message, style, "🔍 "))

        if stream:
            self._emit_status_event(message, "debug")

    def warning(self, message: str, stream: bool = True) -> None:
        """Warning message - logs and emits by default."""
        self.base_logger.warning(self._format_message(message, "bold yellow", "⚠️  "))

        if stream:
            self._emit_status_event(message, "warning")

    def error(self, message: str, exc_info: bool = False) -> None:
        """Error message - always logs and emits."""
        self.base_logger.error(self._format_message(message, "bold red", "❌ "), exc_info=exc_info)
        self._emit_status_event(message, "error")

    def success(self, message: str, stream: bool = False) -> None:
        """Success message - logs and optionally emits."""
        self.base_logger.info(self._format_message(message, "bold green", "✅ "))

        if stream:
            self._emit_status_event(message, "success")

    def timing(self, message: str, stream: bool = False) -> None:
        """Timing information - logs and optionally emits."""
        self.base_logger.info(self._format_message(message, "bold white", "🕒 "))

        if stream:
            self._emit_status_event(message, "timing")

    @property
    def name(self) -> str:
        return self.base_logger.name


def _setup_rich_logging(level: int = logging.INFO) -> None:
    """Configure Rich logging for the root logger (called once)."""
    root_logger = logging.getLogger()

    for handler in root_logger.handlers:
        if isinstance(handler, RichHandler):
            return

    root_logger.setLevel(level)

    try:
        # Hide locals by default to avoid leaking document contents into tracebacks
        rich_tracebacks = get_config_value("logging.rich_tracebacks", True)
        show_traceback_locals = get_config_value("logging.show_traceback_locals", False)
        show_full_paths = get_config_value("logging.show_full_paths", False)
    except Exception:
        rich_tracebacks = True
        show_traceback_locals = False
        show_full_paths = False

    console = Console(width=120)

    handler = RichHandler(
        console=console,
        rich_tracebacks=rich_tracebacks,
        markup=True,
        show_path=show_full_paths,
        show_time=True,
        show_level=True,
        tracebacks_show_locals=show_traceback_locals,
    )

    root_logger.addHandler(handler)


def get_logger(
    component_name: str | None = None,
    level: int = logging.INFO,
    *,
    name: str | None = None,
    color: str | None = None,
) -> ComponentLogger:
    """
    Get a component logger.

    Primary API:
        component_name: Component name (e.g., 'loader', 'store')
        level: Logging level

    Explicit API (for custom loggers):
        name: Direct logger name (keyword-only)
        color: Direct color specification (keyword-only)

    Returns:
        ComponentLogger instance

    Examples:
        logger = get_logger("loader")
        logger.info("Loading context")

        logger = get_logger(name="test_logger", color="blue")
    """
    _setup_rich_logging(level)

    if name is not None:
        return ComponentLogger(logging.getLogger(name), name, color or "white")

    if component_name is None:
        raise ValueError(
            "Component name is required. Usage: get_logger('component_name') or "
            "get_logger(name='custom_name', color='blue')"
        )

    base_logger = logging.getLogger(f"baton.{component_name}")

    try:
        color = get_config_value(f"logging.logging_colors.{component_name}") or "white"
    except Exception as e:
        color = "white"
        if os.getenv("DEBUG_LOGGING"):
            print(f"⚠️  WARNING: Failed to load color config for {component_name}: {e}.")

    return ComponentLogger(base_logger, component_name, color)
