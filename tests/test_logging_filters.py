"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from shipguard.core.config import LogSettings
from shipguard.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    configure_logging,
    digest,
    set_request_id,
)


@pytest.fixture
def capture() -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_credentials(capture):
    """Ensure password and session fields are redacted."""
    logger, stream = capture

    logger.info(
        "auth.login_failed",
        extra={
            "password": "hunter2",
            "session_token": "abc.def.ghi",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()

    assert "hunter2" not in output
    assert "abc.def.ghi" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_rate_limit_event_fields_pass_through(capture):
    """Limiter events log hashed keys and counters unmodified."""
    logger, stream = capture

    logger.warning(
        "rate_limit.exceeded",
        extra={"key_hash": "0123abcd", "limit": 5, "remaining": 0, "window_ms": 900000},
    )

    record = json.loads(stream.getvalue())
    assert record["message"] == "rate_limit.exceeded"
    assert record["level"] == "warning"
    assert record["key_hash"] == "0123abcd"
    assert record["window_ms"] == 900000
    assert "[REDACTED]" not in stream.getvalue()


def test_sensitive_filter_redacts_nested_dicts(capture):
    """Ensure nested sensitive fields are redacted."""
    logger, stream = capture

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "cookie": "next-auth=secret-cookie",
                "x-forwarded-for": "203.0.113.9",
                "user-agent": "pytest",
            },
        },
    )

    output = stream.getvalue()

    assert "secret-cookie" not in output
    assert "203.0.113.9" not in output
    assert "pytest" in output


def test_request_id_attached_from_context(capture):
    logger, stream = capture

    set_request_id("req-123")
    try:
        logger.info("cache.cleanup", extra={"removed": 3})
    finally:
        clear_request_id()

    record = json.loads(stream.getvalue())
    assert record["request_id"] == "req-123"
    assert record["removed"] == 3


def test_cache_keys_are_logged_as_digests(capture):
    """Cache keys embed user ids, so only a digest reaches the output."""
    logger, stream = capture

    logger.info(
        "cache.set",
        extra={"cache_key": "sevkiyat:products:user-981:page-1", "ttl_s": 300},
    )
    logger.info("cache.delete_pattern", extra={"pattern": "sevkiyat:products:user-981:*"})

    output = stream.getvalue()
    assert "user-981" not in output

    first, second = (json.loads(line) for line in output.splitlines())
    assert first["cache_key"] == digest("sevkiyat:products:user-981:page-1")
    assert len(first["cache_key"]) == 16
    assert first["ttl_s"] == 300
    assert second["pattern"] == digest("sevkiyat:products:user-981:*")


def test_configure_logging_installs_single_json_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(LogSettings(level="DEBUG", format="json"))

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
