"""Seppuku - graceful self-retirement for long-running request servers.

A serving process counts its requests (or watches for fatal errors) and,
past a threshold, retires itself: stop accepting work, notify observers,
wait a randomized deferral window so a fleet does not restart in lockstep,
then exit.

Modules:
- controller  - RetirementController state machine, create_controller()
- config      - RetirementConfig, RetirementSettings (SEPPUKU_* env vars)
- events      - EventChannel, event names
- fatal       - FatalErrorTrap (process-wide uncaught-error hooks)
- timers      - deferral schedulers that never keep the process alive
- middleware  - RetirementMiddleware (ASGI)
- hosts       - UvicornHost, build_uvicorn_server(), build_uvicorn_server_from_settings()
- gateway/    - FastAPI operations router
- logging/    - structlog-backed LoggerProtocol

Usage:
    from seppuku import create_controller

    interceptor = create_controller(host, {"maxRequests": 10000})
    app.middleware("http")(interceptor)
    host.on("retirement-started", lambda deferral_ms, cancel: ...)
"""

from seppuku.config import RetirementConfig, RetirementSettings, build_config, get_settings
from seppuku.controller import (
    CancellationToken,
    RetirementController,
    RetirementInterceptor,
    RetirementState,
    create_controller,
    terminate_process,
)
from seppuku.errors import ConfigurationError, SeppukuError
from seppuku.events import FATAL_ERROR, RETIREMENT_STARTED, EventChannel
from seppuku.fatal import FatalErrorTrap

__version__ = "1.0.0"

__all__ = [
    "CancellationToken",
    "ConfigurationError",
    "EventChannel",
    "FATAL_ERROR",
    "FatalErrorTrap",
    "RETIREMENT_STARTED",
    "RetirementConfig",
    "RetirementController",
    "RetirementInterceptor",
    "RetirementSettings",
    "RetirementState",
    "SeppukuError",
    "build_config",
    "create_controller",
    "get_settings",
    "terminate_process",
]
