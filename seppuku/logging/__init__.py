"""Logging for the retirement controller.

Implements LoggerProtocol on top of structlog.

Usage:
    from seppuku.logging import configure_logging, get_component_logger

    configure_logging("INFO", json_output=True)
    logger = get_component_logger("RetirementController", pid=os.getpid())
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Dict, Optional

import structlog

from seppuku.protocols import LoggerProtocol

# Module state
_CONFIGURED = False


class Logger:
    """LoggerProtocol implementation backed by structlog."""

    def __init__(
        self,
        base_logger: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize logger.

        Args:
            base_logger: Underlying structlog logger (created if None)
            context: Bound context fields
        """
        self._logger = base_logger or structlog.get_logger()
        self._context = context or {}

        if self._context:
            self._logger = self._logger.bind(**self._context)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._logger.debug(msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._logger.info(msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._logger.warning(msg, **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._logger.error(msg, **kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._logger.exception(msg, **kwargs)

    def bind(self, **kwargs: Any) -> "Logger":
        """Create child logger with additional context."""
        return Logger(
            base_logger=structlog.get_logger(),
            context={**self._context, **kwargs},
        )


def configure_logging(
    level: str = "INFO",
    *,
    json_output: bool = True,
) -> None:
    """Configure stdlib logging and structlog.

    Call once at process startup; later calls are ignored.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON; if False, console format
    """
    global _CONFIGURED

    if _CONFIGURED:
        return

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stdout,
    )

    # uvicorn's access log is noisy during drain
    logging.getLogger("uvicorn.access").setLevel(
        getattr(logging, os.environ.get("ACCESS_LOG_LEVEL", "WARNING").upper(), logging.WARNING)
    )

    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def create_logger(component: str, **context: Any) -> LoggerProtocol:
    """Create a logger for dependency injection."""
    return Logger(context={"component": component, **context})


def get_component_logger(
    component: str,
    logger: Optional[LoggerProtocol] = None,
    **context: Any,
) -> LoggerProtocol:
    """Get a logger bound to a component name.

    Args:
        component: Component name (e.g., "RetirementController")
        logger: Optional injected logger. If None, a new one is created.
        **context: Extra fields bound to every message

    Returns:
        LoggerProtocol bound with ``component``
    """
    if logger is None:
        return create_logger(component, **context)
    return logger.bind(component=component, **context)


__all__ = [
    "Logger",
    "configure_logging",
    "create_logger",
    "get_component_logger",
]
