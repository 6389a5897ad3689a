"""Unit tests for structured logging."""
# ruff: noqa: ARG002  # Fixtures used for setup side effects

import json
import logging
from unittest.mock import MagicMock, patch

import pytest
import structlog

from leavebridge.core.logging import (
    LogContext,
    add_environment_info,
    drop_color_message_key,
    get_logger,
    log_external_call,
    setup_logging,
)


@pytest.fixture
def mock_settings():
    """Patch the settings read by the logging processors."""
    settings = MagicMock()
    settings.ENVIRONMENT = "test"
    settings.log_level = "INFO"
    with patch("leavebridge.core.logging.get_settings", return_value=settings):
        yield settings


class TestAddEnvironmentInfo:
    """Tests for add_environment_info processor."""

    def test_adds_environment(self, mock_settings):
        """Test environment is added to event dict."""
        mock_settings.ENVIRONMENT = "production"

        result = add_environment_info(None, "info", {})

        assert result["environment"] == "production"


class TestDropColorMessageKey:
    """Tests for drop_color_message_key processor."""

    def test_drops_color_message(self):
        """Test color_message key is removed."""
        result = drop_color_message_key(None, "info", {"event": "x", "color_message": "y"})

        assert result == {"event": "x"}

    def test_no_color_message(self):
        """Test no error when color_message not present."""
        assert drop_color_message_key(None, "info", {"event": "x"}) == {"event": "x"}


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_custom_level(self, mock_settings):
        """Test the root logger takes the requested level."""
        setup_logging(log_level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_default_level_from_settings(self, mock_settings):
        mock_settings.log_level = "WARNING"

        setup_logging()

        assert logging.getLogger().level == logging.WARNING

    def test_json_output(self, mock_settings, capsys):
        """Test JSON format renders one JSON object per event."""
        setup_logging(json_format=True)

        get_logger("test").info("sync_started", run_id="abc")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        data = json.loads(line)
        assert data["event"] == "sync_started"
        assert data["run_id"] == "abc"
        assert data["environment"] == "test"
        assert data["level"] == "info"

    def test_level_filtering(self, mock_settings, capsys):
        setup_logging(log_level="WARNING", json_format=True)

        get_logger("test").info("hidden")

        assert "hidden" not in capsys.readouterr().out


class TestLogContext:
    """Tests for the LogContext context manager."""

    def test_binds_and_unbinds(self):
        """Test values are bound inside the block only."""
        with LogContext(run_id="run-1", hr_employee_id=7):
            bound = structlog.contextvars.get_contextvars()
            assert bound["run_id"] == "run-1"
            assert bound["hr_employee_id"] == 7

        bound = structlog.contextvars.get_contextvars()
        assert "run_id" not in bound
        assert "hr_employee_id" not in bound

    def test_nested_contexts(self):
        with LogContext(run_id="run-1"):
            with LogContext(hr_employee_id=7):
                assert structlog.contextvars.get_contextvars()["run_id"] == "run-1"
            assert "hr_employee_id" not in structlog.contextvars.get_contextvars()


class TestLogExternalCall:
    """Tests for log_external_call."""

    def test_success_logs_info(self):
        """Test a successful call is logged at info with rounded duration."""
        mock_logger = MagicMock()

        log_external_call(mock_logger, "HRSystem", "GET /employees", 12.3456, True, status=200)

        args, kwargs = mock_logger.info.call_args
        assert args[0] == "external_call"
        assert kwargs["service"] == "HRSystem"
        assert kwargs["duration_ms"] == 12.35
        assert kwargs["status"] == 200

    def test_failure_logs_warning(self):
        mock_logger = MagicMock()

        log_external_call(mock_logger, "EngagementSystem", "POST /sync", 5.0, False)

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.kwargs["success"] is False
