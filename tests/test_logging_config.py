"""Tests for logging configuration, formatters and component loggers."""

import json
import logging
import sys

import pytest

from market_monitor.logging import ComponentLoggerAdapter, get_logger
from market_monitor.logging.config import (
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from market_monitor.logging.context import clear_log_context, log_context


@pytest.fixture(autouse=True)
def clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(message="Test message", extra=None, name="market_monitor.test"):
    return logging.getLogger(name).makeRecord(name, logging.INFO, "test.py", 1, message, (), None, extra=extra)


def key_value_formatter():
    return KeyValueFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


class TestJSONFormatter:
    def test_mandatory_fields(self):
        log_obj = json.loads(JSONFormatter().format(make_record()))

        assert log_obj["level"] == "INFO"
        assert log_obj["logger"] == "market_monitor.test"
        assert log_obj["message"] == "Test message"

    def test_extra_fields(self):
        record = make_record(extra={"event": "dispatch.run.completed", "change_count": 3, "had_errors": False})

        log_obj = json.loads(JSONFormatter().format(record))

        assert log_obj["event"] == "dispatch.run.completed"
        assert log_obj["change_count"] == 3
        assert log_obj["had_errors"] is False

    def test_non_json_values_stringified(self):
        record = make_record(extra={"error_type": ValueError})

        log_obj = json.loads(JSONFormatter().format(record))

        assert "ValueError" in log_obj["error_type"]

    def test_timestamp_format(self):
        timestamp = json.loads(JSONFormatter().format(make_record()))["timestamp"]

        assert timestamp.endswith("Z")
        assert len(timestamp) == 24  # 2026-01-02T10:30:00.123Z

    def test_standard_attributes_not_duplicated(self):
        log_obj = json.loads(JSONFormatter().format(make_record(extra={"event": "x"})))

        assert "name" not in log_obj
        assert "levelno" not in log_obj

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.getLogger("t").makeRecord("t", logging.ERROR, "t.py", 1, "failed", (), sys.exc_info())

        log_obj = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in log_obj["exc_info"]


class TestKeyValueFormatter:
    def test_basic_line(self):
        output = key_value_formatter().format(make_record())

        assert "[INFO] market_monitor.test: Test message" in output

    def test_extras_sorted_and_rendered(self):
        record = make_record(extra={"event": "tracker.detect.completed", "jobs_seen": 4, "fault": None, "ok": True})

        output = key_value_formatter().format(record)

        assert output.endswith("event=tracker.detect.completed fault=null jobs_seen=4 ok=true")

    def test_values_with_spaces_quoted(self):
        output = key_value_formatter().format(make_record(extra={"reason": "lock held"}))

        assert 'reason="lock held"' in output

    def test_service_metadata_omitted(self):
        record = make_record()
        ContextualFilter(environment="test").filter(record)

        output = key_value_formatter().format(record)

        assert "service=" not in output
        assert "environment=" not in output


class TestContextualFilter:
    def test_static_fields(self):
        record = make_record()

        ContextualFilter(service="svc", environment="test").filter(record)

        assert record.service == "svc"
        assert record.environment == "test"

    def test_context_fields(self):
        record = make_record()

        with log_context(run_id="3f2a", subscriber_id=42):
            ContextualFilter().filter(record)

        assert record.run_id == "3f2a"
        assert record.subscriber_id == 42

    def test_explicit_extra_wins_over_context(self):
        record = make_record(extra={"job_id": "explicit"})

        with log_context(job_id="scoped"):
            ContextualFilter().filter(record)

        assert record.job_id == "explicit"

    def test_full_pipeline(self):
        record = make_record("Cycle finished", extra={"event": "dispatch.run.completed"})

        with log_context(run_id="3f2a"):
            ContextualFilter(environment="test").filter(record)
        log_obj = json.loads(JSONFormatter().format(record))

        assert log_obj["service"] == "market-monitor"
        assert log_obj["environment"] == "test"
        assert log_obj["run_id"] == "3f2a"
        assert log_obj["event"] == "dispatch.run.completed"


class TestConfigureLogging:
    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(level="LOUD")

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid log format"):
            configure_logging(format_type="xml")

    @pytest.mark.parametrize("format_type, formatter_cls", [("json", JSONFormatter), ("key-value", KeyValueFormatter)])
    def test_installs_single_handler(self, restore_root_logger, format_type, formatter_cls):
        configure_logging(level="DEBUG", format_type=format_type, environment="test")
        configure_logging(level="DEBUG", format_type=format_type, environment="test")

        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, formatter_cls)
        assert restore_root_logger.level == logging.DEBUG

    def test_urllib3_debug_quieted(self, restore_root_logger):
        configure_logging(level="DEBUG")

        assert logging.getLogger("urllib3").level == logging.INFO


class TestGetLogger:
    def test_plain_logger_without_component(self):
        assert isinstance(get_logger("market_monitor.x"), logging.Logger)

    def test_component_injected(self, caplog):
        logger = get_logger("market_monitor.x", component="tracker")
        assert isinstance(logger, ComponentLoggerAdapter)

        with caplog.at_level(logging.INFO, logger="market_monitor.x"):
            logger.info("hello", extra={"event": "tracker.test"})

        record = caplog.records[-1]
        assert record.component == "tracker"
        assert record.event == "tracker.test"

    def test_call_site_can_override_component(self, caplog):
        logger = get_logger("market_monitor.y", component="tracker")

        with caplog.at_level(logging.INFO, logger="market_monitor.y"):
            logger.info("hello", extra={"component": "dispatch"})

        assert caplog.records[-1].component == "dispatch"
