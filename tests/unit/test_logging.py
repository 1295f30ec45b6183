"""Tests for structured logging functionality.

Tests logging configuration, processors and context binding.
"""

import os

import pytest
import structlog

from shop_billing.logging_config import (
    add_app_context,
    bind_context,
    clear_context,
    configure_logging,
    drop_debug_in_production,
    get_logger,
    mask_sensitive_fields,
    unbind_context,
)


@pytest.fixture(scope="module")
def setup_logging():
    """Configure logging for all tests in this module."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_format = os.getenv("LOG_FORMAT", "console")
    configure_logging(log_level=log_level, json_format=log_format.lower() == "json")
    yield


@pytest.fixture(autouse=True)
def cleanup_context():
    """Ensure context is cleared before and after each test."""
    clear_context()
    yield
    clear_context()


class TestProcessors:
    """Test the custom processors in the chain."""

    def test_app_context_added(self):
        event = add_app_context(None, "info", {"event": "x"})
        assert event["app"] == "shop-billing"

    def test_signature_masked(self):
        event = mask_sensitive_fields(
            None, "warning", {"event": "x", "signature": "9ef4dffbfd84f1318f67"}
        )
        assert event["signature"] == "9ef4df..."

    def test_utr_masked(self):
        event = mask_sensitive_fields(None, "info", {"event": "x", "utr": "123456789012"})
        assert event["utr"] == "123456..."

    def test_short_and_non_string_values_kept(self):
        event = mask_sensitive_fields(
            None, "info", {"event": "x", "signature": "abc", "authorization": None}
        )
        assert event["signature"] == "abc"
        assert event["authorization"] is None

    def test_other_fields_untouched(self):
        event = mask_sensitive_fields(None, "info", {"event": "x", "payment_id": "pay_123456789"})
        assert event["payment_id"] == "pay_123456789"

    def test_debug_dropped_outside_debug_mode(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        with pytest.raises(structlog.DropEvent):
            drop_debug_in_production(None, "debug", {"event": "x"})

    def test_debug_kept_in_debug_mode(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        event = {"event": "x"}
        assert drop_debug_in_production(None, "debug", event) is event


class TestContextualLogging:
    """Test logging with bound context."""

    def test_bind_context(self, setup_logging):
        bind_context(request_id="req-12345", account_id="shop-789")
        assert structlog.contextvars.get_contextvars() == {
            "request_id": "req-12345",
            "account_id": "shop-789",
        }
        get_logger("test.context").info("subscription_lookup_started")

    def test_unbind_context(self, setup_logging):
        bind_context(request_id="req-1", account_id="shop-1")
        unbind_context("account_id")
        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}

    def test_clear_context(self, setup_logging):
        bind_context(request_id="req-1")
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}


@pytest.mark.parametrize("level", ["debug", "info", "warning", "error"])
def test_log_levels(setup_logging, level):
    """Logging at every level does not raise."""
    logger = get_logger("test.parametrized")
    getattr(logger, level)("test_message", level=level, signature="abcdefghijkl")


def test_exception_logging_with_traceback(setup_logging):
    logger = get_logger("test.exceptions")
    try:
        {"a": 1}["b"]
    except KeyError as e:
        logger.error("lookup_failed", error=str(e), exc_info=True)
