"""Unit tests for the structured logging configuration.

Covers renderer selection, request-ID propagation from ``request_id_var``,
clipping of long values, and repeated configuration.
"""

from __future__ import annotations

import json
import logging
from io import StringIO
from typing import Any

import pytest
import structlog

from wikistats.core.logging_config import _clip_long_values, configure_logging, request_id_var


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _capture_records(log_level: str, message: str) -> list[dict[str, Any]]:
    """Emit one stdlib log record and return every JSON line written.

    The root handler's stream is swapped for a buffer for the duration of
    the call.
    """
    configure_logging(log_level)

    buffer = StringIO()
    swapped = []
    for handler in logging.getLogger().handlers:
        if hasattr(handler, "stream"):
            swapped.append((handler, handler.stream))
            handler.stream = buffer

    logging.getLogger("wikistats.test").info(message)

    for handler, stream in swapped:
        handler.flush()
        handler.stream = stream

    lines = [line for line in buffer.getvalue().splitlines() if line.strip()]
    return [json.loads(line) for line in lines]


def _find(records: list[dict[str, Any]], event: str) -> dict[str, Any]:
    match = next((r for r in records if r.get("event") == event), None)
    assert match is not None, f"no record with event={event!r} in {records!r}"
    return match


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestConfigureLoggingJson:
    def test_each_line_is_a_json_object(self) -> None:
        records = _capture_records("INFO", "json_line_test")
        assert records
        assert all(isinstance(r, dict) for r in records)

    def test_record_carries_standard_fields(self) -> None:
        record = _find(_capture_records("INFO", "fields_test"), "fields_test")
        assert {"timestamp", "level", "logger"} <= record.keys()
        assert record["level"] == "info"
        assert record["logger"] == "wikistats.test"

    def test_httpx_is_quieted_outside_debug(self) -> None:
        configure_logging("INFO")
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_httpx_is_audible_at_debug(self) -> None:
        configure_logging("DEBUG")
        assert logging.getLogger("httpx").level == logging.NOTSET
        configure_logging("INFO")

    def test_json_can_be_forced_at_debug(self) -> None:
        configure_logging("DEBUG", "json")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)
        configure_logging("INFO")

    def test_console_can_be_forced_at_info(self) -> None:
        configure_logging("INFO", "console")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter.processors[-1], structlog.dev.ConsoleRenderer)
        configure_logging("INFO")


class TestRequestIdContextVar:
    def test_request_id_appears_in_record(self) -> None:
        token = request_id_var.set("req-abc-123")
        try:
            records = _capture_records("INFO", "request_id_test")
        finally:
            request_id_var.reset(token)

        assert _find(records, "request_id_test").get("request_id") == "req-abc-123"

    def test_no_request_id_when_unset(self) -> None:
        request_id_var.set(None)
        record = _find(_capture_records("INFO", "no_request_id_test"), "no_request_id_test")
        assert record.get("request_id") is None


class TestClipLongValues:
    def test_long_value_is_clipped(self) -> None:
        event = _clip_long_values(None, "info", {"event": "x", "body": "a" * 1500})
        assert event["body"] == "a" * 1000 + "...(+500 chars)"

    def test_short_and_non_string_values_are_kept(self) -> None:
        event = _clip_long_values(
            None, "info", {"event": "x", "continue_token": "20200101|42", "returned": 500}
        )
        assert event == {"event": "x", "continue_token": "20200101|42", "returned": 500}

    def test_traceback_is_not_clipped(self) -> None:
        trace = "Traceback\n" + "  frame\n" * 500
        event = _clip_long_values(None, "info", {"event": "x", "exception": trace})
        assert event["exception"] == trace

    def test_long_stdlib_message_is_clipped_in_output(self) -> None:
        record = _capture_records("INFO", "upstream said " + "z" * 2000)[-1]
        assert record["event"].endswith("...(+1014 chars)")


class TestConfigureLoggingIdempotent:
    def test_calling_twice_keeps_one_root_handler(self) -> None:
        configure_logging("INFO")
        configure_logging("INFO")
        assert len(logging.getLogger().handlers) == 1
