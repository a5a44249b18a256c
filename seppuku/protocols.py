"""Protocols for the collaborators the retirement controller talks to.

The controller never imports a concrete server, supervisor or logger.
It is handed objects that satisfy these protocols:

- RetirementHost: the serving process (stop accepting, event channel)
- ProcessGroupWorker: optional handle to a multi-process supervisor
- Scheduler / TimerHandle: deferred-termination timer facility
- LoggerProtocol: structured logging interface
"""

from typing import Any, Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class LoggerProtocol(Protocol):
    """Structured logging interface."""

    def info(self, message: str, **kwargs: Any) -> None: ...
    def debug(self, message: str, **kwargs: Any) -> None: ...
    def warning(self, message: str, **kwargs: Any) -> None: ...
    def error(self, message: str, **kwargs: Any) -> None: ...
    def exception(self, message: str, **kwargs: Any) -> None: ...
    def bind(self, **kwargs: Any) -> "LoggerProtocol": ...


@runtime_checkable
class ProcessGroupWorker(Protocol):
    """Handle to the supervising process group.

    ``disconnect()`` tells the supervisor this worker is leaving so a
    replacement can be spawned before it exits.
    """

    def disconnect(self) -> None: ...


@runtime_checkable
class RetirementHost(Protocol):
    """The serving process as seen by the retirement controller.

    ``worker`` is None unless the process runs under a multi-process
    worker model. The controller installs a ``retire`` attribute on the
    host for on-demand retirement.
    """

    worker: Optional[ProcessGroupWorker]

    def close(self) -> None: ...
    def on(self, event: str, handler: Callable[..., Any]) -> None: ...
    def emit(self, event: str, *args: Any) -> None: ...


@runtime_checkable
class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None: ...


@runtime_checkable
class Scheduler(Protocol):
    """Schedules a callback after ``delay`` seconds.

    Implementations must not keep the process alive on account of the
    pending callback.
    """

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle: ...


__all__ = [
    "LoggerProtocol",
    "ProcessGroupWorker",
    "RetirementHost",
    "Scheduler",
    "TimerHandle",
]
