"""Tests for the structlog-backed logger."""

import logging
from unittest.mock import MagicMock

import pytest
import structlog
from structlog.testing import capture_logs

from seppuku.logging import Logger, configure_logging, create_logger, get_component_logger
from seppuku.protocols import LoggerProtocol


class TestLogger:
    def test_logger_satisfies_protocol(self):
        assert isinstance(create_logger("RetirementController"), LoggerProtocol)

    def test_messages_forwarded_to_structlog(self):
        base = MagicMock()
        logger = Logger(base_logger=base)

        logger.info("retirement_scheduled", deferral_ms=100)
        logger.warning("retirement_cancelled_late")

        base.info.assert_called_once_with("retirement_scheduled", deferral_ms=100)
        base.warning.assert_called_once_with("retirement_cancelled_late")

    def test_context_is_bound(self):
        with capture_logs() as logs:
            create_logger("RetirementController", pid=42).info("retirement_exit", exit_code=1)

        assert logs == [
            {
                "component": "RetirementController",
                "pid": 42,
                "exit_code": 1,
                "event": "retirement_exit",
                "log_level": "info",
            }
        ]

    def test_bind_merges_context(self):
        with capture_logs() as logs:
            create_logger("EventChannel").bind(event_name="fatal-error").error("event_handler_error")

        assert logs[0]["component"] == "EventChannel"
        assert logs[0]["event_name"] == "fatal-error"


class TestComponentLogger:
    def test_injected_logger_is_bound(self, mock_logger):
        result = get_component_logger("FatalErrorTrap", mock_logger, pid=7)

        mock_logger.bind.assert_called_once_with(component="FatalErrorTrap", pid=7)
        assert result is mock_logger

    def test_creates_logger_when_none_injected(self):
        assert isinstance(get_component_logger("FatalErrorTrap"), Logger)


class TestConfigureLogging:
    @pytest.fixture
    def unconfigured(self, monkeypatch):
        """Run configure_logging against mocks and restore global state."""
        monkeypatch.setattr("seppuku.logging._CONFIGURED", False)
        basic_config = MagicMock()
        structlog_configure = MagicMock()
        monkeypatch.setattr("seppuku.logging.logging.basicConfig", basic_config)
        monkeypatch.setattr("seppuku.logging.structlog.configure", structlog_configure)
        access = logging.getLogger("uvicorn.access")
        monkeypatch.setattr(access, "level", access.level)
        return basic_config, structlog_configure

    def test_console_output_at_requested_level(self, unconfigured, monkeypatch):
        basic_config, structlog_configure = unconfigured
        monkeypatch.setenv("ACCESS_LOG_LEVEL", "error")

        configure_logging("debug", json_output=False)

        assert basic_config.call_args.kwargs["level"] == logging.DEBUG
        processors = structlog_configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert logging.getLogger("uvicorn.access").level == logging.ERROR

    def test_json_output_and_single_configuration(self, unconfigured):
        basic_config, structlog_configure = unconfigured

        configure_logging("INFO")
        configure_logging("DEBUG", json_output=False)

        structlog_configure.assert_called_once()
        processors = structlog_configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert basic_config.call_args.kwargs["level"] == logging.INFO
