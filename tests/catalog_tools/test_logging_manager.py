"""Tests for the structured logging helpers."""

from __future__ import annotations

import json
import logging

import pytest

from catalog_tools import logging_manager

pytestmark = pytest.mark.logging


@pytest.fixture
def propagating_logger():
    logger = logging.getLogger(logging_manager.LOGGER_NAME)
    original = logger.propagate
    logger.propagate = True
    try:
        yield logger
    finally:
        logger.propagate = original


def test_package_logger_is_isolated():
    logger = logging_manager.get_logger()

    assert logger.name == "catalog_tools"
    assert logger.propagate is False
    assert logger is logging_manager.get_logger()
    assert any(isinstance(handler.formatter, logging_manager.JSONLogFormatter) for handler in logger.handlers)


def test_log_context_is_attached_to_records(caplog, propagating_logger):
    caplog.set_level(logging.INFO, logger="catalog_tools")

    with logging_manager.log_context(correlation_id="abc123", provider="hardcover"):
        assert logging_manager.get_log_context() == {"correlation_id": "abc123", "provider": "hardcover"}
        propagating_logger.info("inside context")
    propagating_logger.info("outside context")

    inside, outside = [record for record in caplog.records if record.name == "catalog_tools"][-2:]
    assert inside.correlation_id == "abc123"
    assert inside.provider == "hardcover"
    assert not hasattr(outside, "correlation_id")
    assert logging_manager.get_log_context() == {}


def test_nested_context_restores_outer_values():
    with logging_manager.log_context(correlation_id="outer"):
        with logging_manager.log_context(provider="loc_authority", status=None):
            assert logging_manager.get_log_context() == {
                "correlation_id": "outer",
                "provider": "loc_authority",
            }
        assert logging_manager.get_log_context() == {"correlation_id": "outer"}


def test_json_formatter_payload():
    record = logging.makeLogRecord(
        {
            "name": "catalog_tools.parsers",
            "levelname": "INFO",
            "levelno": logging.INFO,
            "msg": "Parsed %s file",
            "args": ("epub",),
            "event": "parser.parse.completed",
            "source_format": "epub",
            "attributes": {"text_length": 42},
        }
    )

    payload = json.loads(logging_manager.JSONLogFormatter().format(record))

    assert payload["message"] == "Parsed epub file"
    assert payload["logger"] == "catalog_tools.parsers"
    assert payload["level"] == "INFO"
    assert payload["event"] == "parser.parse.completed"
    assert payload["source_format"] == "epub"
    assert payload["extra"]["attributes"] == {"text_length": 42}
    assert "timestamp" in payload


def test_configure_logging_level():
    logger = logging_manager.get_logger()
    original = logger.level
    try:
        assert logging_manager.configure_logging_level(debug_enabled=True) == logging.DEBUG
        assert logger.level == logging.DEBUG
        assert all(handler.level == logging.DEBUG for handler in logger.handlers)
        assert logging_manager.configure_logging_level(log_level=logging.WARNING) == logging.WARNING
    finally:
        logging_manager.configure_logging_level(log_level=original)
