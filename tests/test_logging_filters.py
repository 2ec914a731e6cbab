"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from leaf_tracker.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identifier,
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
    logger, stream = capture

    logger.info(
        "upstream.forwarded",
        extra={
            "authorization": "Bearer patXYZ.secret",
            "upstream_api_key": "key-123",
            "endpoint": "streets",
        },
    )

    output = stream.getvalue()
    assert "patXYZ" not in output
    assert "key-123" not in output
    assert "[REDACTED]" in output
    assert "streets" in output


def test_sensitive_filter_redacts_raw_client_addresses(capture):
    logger, stream = capture

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "client_ip": "203.0.113.7",
            "client_hash": hash_identifier("203.0.113.7"),
            "headers": {"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "user-agent": "pytest"},
        },
    )

    record = json.loads(stream.getvalue())
    assert "203.0.113.7" not in stream.getvalue()
    assert record["client_ip"] == "[REDACTED]"
    assert record["headers"]["X-Forwarded-For"] == "[REDACTED]"
    assert record["headers"]["user-agent"] == "pytest"
    assert record["client_hash"] == hash_identifier("203.0.113.7")


def test_safe_fields_pass_through(capture):
    logger, stream = capture

    logger.info(
        "offline_cache.activated",
        extra={"cache_version": "v2", "deleted_stores": 2},
    )

    record = json.loads(stream.getvalue())
    assert record["message"] == "offline_cache.activated"
    assert record["level"] == "info"
    assert record["cache_version"] == "v2"
    assert record["deleted_stores"] == 2
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_from_context_is_attached(capture):
    logger, stream = capture

    set_request_id("req-123")
    try:
        logger.info("rate_limit.allowed")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-123"


def test_hash_identifier_is_stable_and_short():
    assert hash_identifier("10.0.0.1") == hash_identifier("10.0.0.1")
    assert hash_identifier("10.0.0.1") != hash_identifier("10.0.0.2")
    assert len(hash_identifier("10.0.0.1")) == 16
