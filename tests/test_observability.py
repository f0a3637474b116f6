"""Tests for the observability module.

Tests for metrics collection, logging configuration and the conflict log.
"""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from sticky_situation.observability import (
    CONFLICT_LOGGER_NAME,
    ROOT_LOGGER_NAME,
    MetricsCollector,
    configure_conflict_log,
    configure_logging,
    is_logging_configured,
    metrics,
    timed_operation,
)


@pytest.fixture
def restore_loggers():
    """Remove handlers the tests add to package loggers."""
    loggers = [logging.getLogger(ROOT_LOGGER_NAME), logging.getLogger(CONFLICT_LOGGER_NAME)]
    saved = [(lg, list(lg.handlers), lg.level, lg.propagate) for lg in loggers]
    yield
    for lg, handlers, level, propagate in saved:
        for handler in lg.handlers:
            if handler not in handlers:
                handler.close()
        lg.handlers = handlers
        lg.setLevel(level)
        lg.propagate = propagate


class TestMetricsCollector:
    """Tests for in-memory operation metrics."""

    def test_record_success_and_error(self):
        collector = MetricsCollector()
        collector.record_operation("upsert", 10.0, success=True)
        collector.record_operation("upsert", 30.0, success=False, error="boom")

        m = collector.get_metrics()["upsert"]
        assert m["count"] == 2
        assert m["success_count"] == 1
        assert m["error_count"] == 1
        assert m["avg_duration_ms"] == 20.0
        assert m["max_duration_ms"] == 30.0
        assert m["last_error"] == "boom"

    def test_reset(self):
        collector = MetricsCollector()
        collector.record_operation("search", 1.0, success=True)
        collector.reset()
        assert collector.get_metrics() == {}


class TestTimedOperation:
    """Tests for the timing context manager."""

    def test_success_is_recorded(self):
        with timed_operation("sync_pass", dry_run=True) as op:
            op["result_count"] = 3

        assert len(op["correlation_id"]) == 8
        assert metrics.get_metrics()["sync_pass"]["success_count"] == 1

    def test_errors_propagate_and_are_recorded(self):
        with pytest.raises(ValueError):
            with timed_operation("upsert", sticky_id="a"):
                raise ValueError("bad record")

        m = metrics.get_metrics()["upsert"]
        assert m["error_count"] == 1
        assert m["last_error"] == "bad record"


class TestConfigureLogging:
    """Tests for persistent logging setup."""

    def test_creates_rotating_log_file(self, tmp_path, restore_loggers):
        log_file = configure_logging(tmp_path / "logs", level=logging.DEBUG, console=False)

        assert log_file == tmp_path / "logs" / "sticky.log"
        assert is_logging_configured() is True
        root = logging.getLogger(ROOT_LOGGER_NAME)
        handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
        assert any(h.maxBytes == 10 * 1024 * 1024 and h.backupCount == 5 for h in handlers)

        logging.getLogger("sticky_situation.tests").info("hello from the test")
        for h in handlers:
            h.flush()
        assert "hello from the test" in log_file.read_text(encoding="utf-8")

    def test_repeated_calls_do_not_duplicate_handlers(self, tmp_path, restore_loggers):
        configure_logging(tmp_path, console=False)
        before = len(logging.getLogger(ROOT_LOGGER_NAME).handlers)
        configure_logging(tmp_path, console=False)
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == before


class TestConflictLog:
    """Tests for the conflict log."""

    def test_entries_land_in_file_only(self, tmp_path, restore_loggers):
        path = tmp_path / "conflicts" / "conflicts.log"
        conflict_logger = configure_conflict_log(path)

        conflict_logger.info("a: filesystem version (2) overwrote database version (1)")
        for h in conflict_logger.handlers:
            h.flush()

        assert conflict_logger.propagate is False
        assert "overwrote database version" in path.read_text(encoding="utf-8")
