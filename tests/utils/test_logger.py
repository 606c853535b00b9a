"""
Tests for the component logging system.

Tests cover:
- Logger creation for components and custom names
- Color lookup from configuration
- Forwarding of warning/error/status messages as StatusEvents
- Graceful degradation when an event handler is broken
"""

import logging
from unittest.mock import patch

import pytest
from rich.logging import RichHandler

from baton.events import register_event_handler
from baton.utils.config import reset_config
from baton.utils.logger import ComponentLogger, get_logger


class TestComponentLoggerBasic:
    """Test basic ComponentLogger functionality."""

    def test_logger_creation(self):
        logger = get_logger("loader")
        assert isinstance(logger, ComponentLogger)
        assert logger.component_name == "loader"
        assert logger.name == "baton.loader"

    def test_logger_creation_with_custom_params(self):
        logger = get_logger(name="custom_logger", color="blue")
        assert logger.component_name == "custom_logger"
        assert logger.color == "blue"
        assert logger.name == "custom_logger"

    def test_component_name_required(self):
        with pytest.raises(ValueError):
            get_logger()

    def test_basic_logging_methods(self):
        """All message types work without any handler registered."""
        logger = get_logger("loader")
        logger.status("Status message")
        logger.key_info("Key info message")
        logger.info("Info message")
        logger.debug("Debug message")
        logger.warning("Warning message")
        logger.error("Error message")
        logger.success("Success message")
        logger.timing("Timing message")

    def test_rich_handler_installed_once(self):
        get_logger("loader")
        get_logger("store")
        handlers = [h for h in logging.getLogger().handlers if isinstance(h, RichHandler)]
        assert len(handlers) == 1


class TestLoggerColors:
    def test_default_color(self):
        assert get_logger("loader").color == "white"

    def test_color_from_config(self, tmp_path):
        (tmp_path / "config.yml").write_text("logging:\n  logging_colors:\n    loader: cyan\n")
        reset_config()
        assert get_logger("loader").color == "cyan"


class TestStatusEventForwarding:
    """Test that important messages reach registered event handlers."""

    @pytest.fixture
    def received(self):
        items = []
        register_event_handler(items.append)
        return items

    def test_warning_forwarded_by_default(self, received):
        get_logger("fallback").warning("Falling back to full detail")
        assert received[0]["event_class"] == "StatusEvent"
        assert received[0]["level"] == "warning"
        assert received[0]["component"] == "fallback"
        assert received[0]["message"] == "Falling back to full detail"

    def test_error_and_status_forwarded(self, received):
        logger = get_logger("loader")
        logger.error("Budget exhausted")
        logger.status("Loading")
        assert [r["level"] for r in received] == ["error", "status"]

    def test_info_not_forwarded_by_default(self, received):
        logger = get_logger("loader")
        logger.info("quiet")
        logger.debug("quiet")
        assert received == []

    def test_explicit_stream_flag(self, received):
        get_logger("loader").info("loud", stream=True)
        assert received[0]["level"] == "info"

    def test_warning_stream_disabled(self, received):
        get_logger("loader").warning("local only", stream=False)
        assert received == []

    def test_emit_failure_does_not_break_logging(self):
        logger = get_logger("loader")
        with patch("baton.events.emitter.EventEmitter.emit", side_effect=RuntimeError("boom")):
            logger.warning("still logged")
