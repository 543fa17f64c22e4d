"""
Unit tests for structlog configuration.
"""

from __future__ import annotations

import pytest
import structlog

from hostel_bookings.logging_config import add_service, build_processors


@pytest.mark.unit
def test_add_service_stamps_process_name() -> None:
    """Test that events get the emitting service unless they already name one."""
    processor = add_service("scheduler")

    assert processor(None, "info", {"event": "sweep_completed"})["service"] == "scheduler"
    assert processor(None, "info", {"event": "x", "service": "api"})["service"] == "api"


@pytest.mark.unit
def test_json_rendering_formats_tracebacks_first() -> None:
    """Test that JSON output renders exc_info into a string before serialising."""
    processors = build_processors("api", "INFO")

    assert isinstance(processors[-1], structlog.processors.JSONRenderer)
    assert structlog.processors.format_exc_info in processors


@pytest.mark.unit
def test_debug_uses_console_renderer() -> None:
    processors = build_processors("api", "DEBUG")

    assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
    assert structlog.processors.format_exc_info not in processors
