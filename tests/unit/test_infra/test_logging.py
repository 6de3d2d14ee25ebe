"""Unit tests for logging configuration, JSON formatting and lazy logging."""
from __future__ import annotations

import json
import logging

import pytest

from materialized_tree.core.settings import LoggingSettings
from materialized_tree.infra.logging import (
    JSONFormatter,
    LazyLoggerAdapter,
    configure_logging,
    get_lazy_logger,
    lazy,
    setup_logging,
)


def _record(msg: str, *args, **extra) -> logging.LogRecord:
    record = logging.LogRecord("repository.Category", logging.INFO, __file__, 10, msg, args, None)
    record.__dict__.update(extra)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.captureWarnings(False)


@pytest.mark.unit
class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    def test_formats_one_json_object(self):
        """Test base keys, static fields and extras."""
        formatter = JSONFormatter(static={"service": "trees"})

        line = formatter.format(_record("Descendants %s", "rewritten", entity="Category", count=4))
        data = json.loads(line)

        assert data["level"] == "INFO"
        assert data["logger"] == "repository.Category"
        assert data["message"] == "Descendants rewritten"
        assert data["service"] == "trees"
        assert data["entity"] == "Category"
        assert data["count"] == 4
        assert data["timestamp"].endswith("Z")
        assert "process" not in data and "thread" not in data
        assert "\n" not in line

    def test_exception_stays_on_one_line(self):
        """Test tracebacks are escaped to keep JSONL."""
        formatter = JSONFormatter()
        try:
            raise ValueError("boom")
        except ValueError:
            import sys

            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        line = formatter.format(record)

        assert "\n" not in line
        assert "ValueError: boom" in json.loads(line)["exception"]


@pytest.mark.unit
class TestConfigureLogging:
    """Test suite for configure_logging."""

    def test_json_handler_installed(self, restore_root_logger):
        """Test JSON console handler and root level."""
        configure_logging(log_level="debug", json_logs=True, service_name="trees")

        handler = restore_root_logger.handlers[-1]
        assert restore_root_logger.level == logging.DEBUG
        assert isinstance(handler.formatter, JSONFormatter)
        assert handler.formatter.static == {"service": "trees"}

    def test_setup_logging_from_settings(self, restore_root_logger):
        """Test setup_logging applies LoggingSettings and explicit overrides."""
        settings = LoggingSettings(level="ERROR", json_logs=True, capture_warnings=False)

        setup_logging(settings, force=True, json_logs=False)

        assert restore_root_logger.level == logging.ERROR
        assert not isinstance(restore_root_logger.handlers[-1].formatter, JSONFormatter)

    def test_text_handler_installed(self, restore_root_logger):
        """Test human-readable formatter when JSON is off."""
        configure_logging(log_level="WARNING", json_logs=False, capture_warnings=False)

        handler = restore_root_logger.handlers[-1]
        assert restore_root_logger.level == logging.WARNING
        assert not isinstance(handler.formatter, JSONFormatter)


@pytest.mark.unit
class TestLazyLogging:
    """Test suite for lazy logging helpers."""

    def test_callable_not_evaluated_when_disabled(self):
        """Test DEBUG callables are skipped when DEBUG is off."""
        logger = get_lazy_logger("tests.lazy.disabled")
        logger.logger.setLevel(logging.INFO)
        calls: list[int] = []

        logger.debug(lambda: calls.append(1) or "expensive")

        assert calls == []

    def test_callable_evaluated_when_enabled(self, caplog):
        """Test callables in message and args are evaluated once enabled."""
        logger = get_lazy_logger("tests.lazy.enabled")

        with caplog.at_level(logging.DEBUG, logger="tests.lazy.enabled"):
            logger.debug(lambda: "moved %s nodes", lambda: 3)

        assert isinstance(logger, LazyLoggerAdapter)
        assert caplog.records[-1].getMessage() == "moved 3 nodes"

    def test_inherited_levels_stay_lazy(self, caplog):
        """Test warning/error route through the lazy log() as well."""
        logger = get_lazy_logger("tests.lazy.levels")

        with caplog.at_level(logging.WARNING, logger="tests.lazy.levels"):
            logger.warning(lambda: "vetoed %s", lambda: "move")
            logger.info(lambda: "never built")

        assert [record.getMessage() for record in caplog.records] == ["vetoed move"]

    def test_lazy_string(self):
        """Test lazy() defers formatting to str()."""
        value = lazy(lambda: "1/4/9")

        assert str(value) == "1/4/9"
        assert "%s" % value == "1/4/9"
