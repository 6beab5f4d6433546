"""Unit tests for structured logging setup."""

import logging
from unittest.mock import patch

import structlog

from swapstudio.core.logging import (
    QUIET_LOGGERS,
    add_service_context,
    build_renderer,
    setup_logging,
)


class TestAddServiceContext:
    """Tests for the service context processor."""

    def test_adds_service_and_control_plane(self):
        """Events get the service name and control plane URL."""
        with patch("swapstudio.core.logging.settings") as mock_settings:
            mock_settings.CONTROL_PLANE_URL = "http://cp:8091"
            event = add_service_context(None, "info", {"event": "backend_selected"})

        assert event["service"] == "swapstudio"
        assert event["control_plane"] == "http://cp:8091"

    def test_keeps_explicit_values(self):
        """Values bound by the caller win."""
        event = add_service_context(None, "info", {"event": "x", "control_plane": "other"})

        assert event["control_plane"] == "other"


class TestBuildRenderer:
    """Tests for renderer selection."""

    def test_json(self):
        assert isinstance(build_renderer("json"), structlog.processors.JSONRenderer)

    def test_console(self):
        assert isinstance(build_renderer("console"), structlog.dev.ConsoleRenderer)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_level_and_quiet_loggers(self):
        """The requested level reaches the root logger and chatty libraries stay at WARNING."""
        with patch("swapstudio.core.logging.logging.basicConfig") as basic_config:
            setup_logging(level="debug", log_format="json")

        assert basic_config.call_args.kwargs["level"] == logging.DEBUG
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        with patch("swapstudio.core.logging.logging.basicConfig") as basic_config:
            setup_logging(level="chatty", log_format="console")

        assert basic_config.call_args.kwargs["level"] == logging.INFO
