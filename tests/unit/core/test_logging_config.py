"""Unit tests for structured logging configuration."""

from __future__ import annotations

import structlog

from core.logging_config import get_logger


def test_get_logger_prints_json_events_through_structlog() -> None:
    """Loggers should use structlog's print factory with a JSON renderer."""
    get_logger(__name__)
    config = structlog.get_config()

    assert isinstance(config["logger_factory"], structlog.PrintLoggerFactory)
    assert isinstance(config["processors"][-1], structlog.processors.JSONRenderer)
