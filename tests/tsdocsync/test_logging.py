"""Tests for structured logging helpers."""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Iterator

import pytest

from tsdocsync.logging import (
    CorrelationContext,
    JsonFormatter,
    get_correlation_id,
    get_logger,
    setup_logging,
    with_fields,
)


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLoggerAdapter:
    """Field injection."""

    def test_operation_defaults_and_status(self, caplog_records) -> None:
        logger = get_logger("tsdocsync.tests.adapter")
        logger.warning("careful")
        (record,) = caplog_records()["tsdocsync.tests.adapter"]
        assert record.operation == "unknown"
        assert record.status == "warning"

    def test_bound_fields_and_correlation(self, caplog_records) -> None:
        logger = with_fields(get_logger("tsdocsync.tests.bound"), operation="render", symbol="add")
        with CorrelationContext("pass-1"):
            logger.info("rendered", extra={"symbol": "sum"})
        (record,) = caplog_records()["tsdocsync.tests.bound"]
        assert record.operation == "render"
        assert record.symbol == "sum"
        assert record.correlation_id == "pass-1"
        assert record.status == "success"

    def test_library_loggers_are_silent(self) -> None:
        logger = get_logger("tsdocsync.tests.silent")
        assert any(isinstance(handler, logging.NullHandler) for handler in logger.logger.handlers)


def test_correlation_context_resets() -> None:
    assert get_correlation_id() is None
    with CorrelationContext("outer"):
        with CorrelationContext("inner"):
            assert get_correlation_id() == "inner"
        assert get_correlation_id() == "outer"
    assert get_correlation_id() is None


def test_json_formatter_payload() -> None:
    record = logging.LogRecord("tsdocsync.x", logging.ERROR, __file__, 1, "failed %s", ("a.ts",), None)
    record.operation = "update"
    record.regions = 2
    record.skipped = object()
    with CorrelationContext("abc"):
        payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "failed a.ts"
    assert payload["level"] == "ERROR"
    assert payload["operation"] == "update"
    assert payload["regions"] == 2
    assert payload["correlation_id"] == "abc"
    assert "skipped" not in payload


@pytest.mark.usefixtures("restore_root_logger")
def test_setup_logging_writes_json_lines() -> None:
    stream = io.StringIO()
    setup_logging(logging.INFO, stream=stream)
    get_logger("tsdocsync.tests.setup").info("hello", extra={"operation": "test"})
    line = stream.getvalue().strip().splitlines()[-1]
    assert json.loads(line)["message"] == "hello"
