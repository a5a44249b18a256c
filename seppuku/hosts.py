"""Host adapters for serving processes.

UvicornHost adapts a ``uvicorn.Server`` to RetirementHost:
  close()  closes the listening sockets; open connections keep draining
           until the deferral window elapses
  on/emit  plain EventChannel

Usage:
    server, controller = build_uvicorn_server(app, {"maxRequests": 10000}, port=8000)
    asyncio.run(serve_with_retirement(server, controller))

Or, with everything read from ``SEPPUKU_*`` environment variables:
    server, controller = build_uvicorn_server_from_settings(app, port=8000)
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional, Tuple, Union

import uvicorn
from starlette.types import ASGIApp

from seppuku.config import (
    RetirementConfig,
    RetirementSettings,
    TerminationHandler,
    WeightFunction,
    get_settings,
)
from seppuku.controller import RetirementController, create_controller
from seppuku.events import EventChannel
from seppuku.logging import configure_logging
from seppuku.middleware import RetirementMiddleware
from seppuku.protocols import LoggerProtocol, ProcessGroupWorker


class UvicornHost(EventChannel):
    """RetirementHost backed by a uvicorn server."""

    def __init__(
        self,
        server: Optional[uvicorn.Server] = None,
        *,
        worker: Optional[ProcessGroupWorker] = None,
        logger: Optional[LoggerProtocol] = None,
    ) -> None:
        super().__init__(logger)
        self.server = server
        self.worker = worker

    def attach(self, server: uvicorn.Server) -> None:
        self.server = server

    def close(self) -> None:
        """Stop accepting new connections."""
        if self.server is None:
            return
        # ``servers`` holds the asyncio listeners once startup has run
        for listener in getattr(self.server, "servers", None) or []:
            listener.close()


def build_uvicorn_server(
    app: ASGIApp,
    config: Union[RetirementConfig, Mapping[str, Any], None] = None,
    *,
    worker: Optional[ProcessGroupWorker] = None,
    logger: Optional[LoggerProtocol] = None,
    **uvicorn_kwargs: Any,
) -> Tuple[uvicorn.Server, RetirementController]:
    """Wrap ``app`` with RetirementMiddleware and build a uvicorn server for it.

    Raises:
        ConfigurationError: if ``config`` is invalid.
    """
    host = UvicornHost(worker=worker, logger=logger)
    controller = create_controller(host, config, logger=logger).controller
    server = uvicorn.Server(
        uvicorn.Config(RetirementMiddleware(app, controller), **uvicorn_kwargs)
    )
    host.attach(server)
    return server, controller


def build_uvicorn_server_from_settings(
    app: ASGIApp,
    settings: Optional[RetirementSettings] = None,
    *,
    weight_function: Optional[WeightFunction] = None,
    custom_termination_handler: Optional[TerminationHandler] = None,
    worker: Optional[ProcessGroupWorker] = None,
    logger: Optional[LoggerProtocol] = None,
    **uvicorn_kwargs: Any,
) -> Tuple[uvicorn.Server, RetirementController]:
    """Process entry point: configure logging and retirement from settings.

    Args:
        app: ASGI application to serve
        settings: Defaults to the lazily loaded global settings
        weight_function: Request weight callable (not settable from env)
        custom_termination_handler: Replaces the default sequence
        worker: Process-group handle, if running under a supervisor
        logger: Injected logger
        **uvicorn_kwargs: Passed to ``uvicorn.Config``

    Raises:
        ConfigurationError: if the settings describe an invalid config.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    config = settings.to_config(
        weight_function=weight_function,
        custom_termination_handler=custom_termination_handler,
    )
    return build_uvicorn_server(app, config, worker=worker, logger=logger, **uvicorn_kwargs)


async def serve_with_retirement(
    server: uvicorn.Server,
    controller: RetirementController,
) -> None:
    """Serve until shutdown or retirement, trapping loop-level errors too."""
    trap = controller.fatal_error_trap
    if trap is not None:
        trap.install_loop(asyncio.get_running_loop())
    await server.serve()


__all__ = [
    "UvicornHost",
    "build_uvicorn_server",
    "build_uvicorn_server_from_settings",
    "serve_with_retirement",
]
