"""
Unit tests -- request context on log lines.
"""
import logging

from medbrain_gateway.core.logging import (
    LOG_FORMAT,
    NO_REQUEST,
    RequestContextFilter,
    bind_request_context,
    current_request_context,
    get_logger,
    reset_request_context,
)


def _record(msg="hello"):
    return logging.LogRecord("medbrain_gateway.test", logging.INFO, __file__, 1, msg, None, None)


def test_no_request_outside_http():
    record = _record()
    RequestContextFilter().filter(record)
    assert record.request == NO_REQUEST


def test_bound_context_added_to_record():
    token = bind_request_context("203.0.113.7", "/api/query")
    try:
        record = _record()
        RequestContextFilter().filter(record)
        assert record.request == "203.0.113.7 /api/query"
    finally:
        reset_request_context(token)
    assert current_request_context() == NO_REQUEST


def test_formatted_line_includes_request():
    record = _record("Executing SQL")
    token = bind_request_context("unknown", "/api/export")
    try:
        RequestContextFilter().filter(record)
    finally:
        reset_request_context(token)
    line = logging.Formatter(LOG_FORMAT).format(record)
    assert line.endswith("| medbrain_gateway.test | unknown /api/export | Executing SQL")


def test_get_logger_attaches_one_filtered_handler():
    logger = get_logger("medbrain_gateway.tests.logging")
    get_logger("medbrain_gateway.tests.logging")
    assert len(logger.handlers) == 1
    assert any(isinstance(f, RequestContextFilter) for f in logger.handlers[0].filters)
