"""
Tests for logging setup.
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from media_injector.logging_setup import LOGGER_NAME, JsonFormatter, setup_logging


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Leave the package logger as it was."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestJsonFormatter:
    """Test JSON formatting."""

    def test_format_basic_record(self):
        """Test formatting a plain record."""
        record = logging.LogRecord(
            "media_injector.audio_controller", logging.INFO, __file__, 10,
            "Playing %s", ("clip.mp3",), None,
        )

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "media_injector.audio_controller"
        assert data["message"] == "Playing clip.mp3"
        assert "timestamp" in data

    def test_format_source_location(self):
        """Test that the emitting module and line are recorded."""
        record = logging.LogRecord(
            "media_injector", logging.INFO, "/app/media_injector/device_arbitrator.py", 42, "started", (), None
        )

        data = json.loads(JsonFormatter().format(record))

        assert data["source"] == "device_arbitrator:42"
        assert "exception" not in data

    def test_format_exception(self):
        """Test that exception info is rendered."""
        try:
            raise RuntimeError("spawn failed")
        except RuntimeError:
            record = logging.LogRecord(
                "media_injector", logging.ERROR, __file__, 10, "boom", (), sys.exc_info()
            )

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: spawn failed" in data["exception"]


class TestSetupLogging:
    """Test logger configuration."""

    def test_console_only(self):
        """Test setup without a log file."""
        logger = setup_logging("debug")

        assert logger.name == LOGGER_NAME
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_with_log_file(self, tmp_path):
        """Test that a rotating JSON file handler is added."""
        log_file = tmp_path / "logs" / "injector.log"

        logger = setup_logging("INFO", str(log_file))
        logging.getLogger("media_injector.process_supervisor").info("hello")
        for handler in logger.handlers:
            handler.flush()

        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert isinstance(file_handlers[0].formatter, JsonFormatter)

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "hello"

    def test_repeated_setup_replaces_handlers(self):
        """Test that calling setup twice does not duplicate handlers."""
        setup_logging("INFO")
        logger = setup_logging("WARNING")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
