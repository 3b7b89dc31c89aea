"""Unit tests for logging configuration and the JSON formatter."""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from postmaint.config.models import LoggingConfig
from postmaint.logging import JSONFormatter, configure_logging, scan_context
from postmaint.logging.context import ScanContextFilter


@pytest.fixture(autouse=True)
def reset_root_logger():
    """Save and restore root logger state between tests."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    for handler in root.handlers:
        if handler not in original_handlers:
            handler.close()
    root.handlers[:] = original_handlers
    root.setLevel(original_level)


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_default_logs_to_stderr(self) -> None:
        """Without a file, a single stderr handler is installed."""
        configure_logging(LoggingConfig())

        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.StreamHandler)
        assert root.handlers[0].stream is sys.stderr

    def test_level_is_applied(self) -> None:
        """The configured level is set on the root logger."""
        configure_logging(LoggingConfig(level="debug"))

        assert logging.getLogger().level == logging.DEBUG

    def test_file_handler(self, tmp_path: Path) -> None:
        """A rotating file handler is used when a file is configured."""
        log_file = tmp_path / "logs" / "postmaint.log"
        configure_logging(LoggingConfig(file=log_file, max_bytes=1000, backup_count=2))

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RotatingFileHandler)
        assert handlers[0].maxBytes == 1000
        assert handlers[0].backupCount == 2
        assert log_file.parent.is_dir()

    def test_file_with_stderr(self, tmp_path: Path) -> None:
        """include_stderr adds a stderr handler next to the file handler."""
        configure_logging(
            LoggingConfig(file=tmp_path / "postmaint.log", include_stderr=True)
        )

        assert len(logging.getLogger().handlers) == 2

    def test_reconfigure_replaces_handlers(self) -> None:
        """Calling twice does not duplicate handlers."""
        configure_logging(LoggingConfig())
        configure_logging(LoggingConfig())

        assert len(logging.getLogger().handlers) == 1

    def test_text_output_carries_scan_tag(self, tmp_path: Path) -> None:
        """Text lines written inside a batch include the scan tag."""
        log_file = tmp_path / "postmaint.log"
        configure_logging(LoggingConfig(file=log_file))

        with scan_context(7, 40):
            logging.getLogger("postmaint.scan").info("Batch done")
        for handler in logging.getLogger().handlers:
            handler.flush()

        content = log_file.read_text()
        assert "[S7:O40] postmaint.scan - INFO - Batch done" in content

    def test_json_output(self, tmp_path: Path) -> None:
        """JSON format writes one object per line."""
        log_file = tmp_path / "postmaint.log"
        configure_logging(LoggingConfig(file=log_file, format="json"))

        logging.getLogger("postmaint.scan").warning("Scan timed out")
        for handler in logging.getLogger().handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().splitlines()[0])
        assert entry["level"] == "WARNING"
        assert entry["message"] == "Scan timed out"
        assert entry["logger"] == "postmaint.scan"


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def _format(self, **extra) -> dict:
        record = logging.LogRecord(
            "postmaint.scan", logging.INFO, __file__, 1, "Processed %d", (10,), None
        )
        for key, value in extra.items():
            setattr(record, key, value)
        ScanContextFilter().filter(record)
        return json.loads(JSONFormatter().format(record))

    def test_basic_fields(self) -> None:
        """Timestamp, level and the formatted message are present."""
        entry = self._format()

        assert entry["message"] == "Processed 10"
        assert entry["level"] == "INFO"
        assert entry["timestamp"].endswith("+00:00")
        assert "context" not in entry

    def test_extra_fields_go_to_context(self) -> None:
        """Non-standard record attributes are reported as context."""
        entry = self._format(post_types=["post"])

        assert entry["context"] == {"post_types": ["post"]}

    def test_scan_context_included(self) -> None:
        """Scan generation and batch offset are reported inside a batch."""
        with scan_context(2, 10):
            entry = self._format()

        assert entry["context"] == {"scan_generation": 2, "batch_offset": 10}

    def test_exception_included(self) -> None:
        """Exception text is included when exc_info is set."""
        try:
            raise ValueError("bad batch")
        except ValueError:
            record = logging.LogRecord(
                "postmaint", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        ScanContextFilter().filter(record)

        entry = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad batch" in entry["exception"]
