"""Event channel shared by the host and the retirement controller.

Event names:
  retirement-started  (deferral_ms: float, cancel: CancellationToken)
  fatal-error         (exc: BaseException)
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from seppuku.logging import get_component_logger
from seppuku.protocols import LoggerProtocol

RETIREMENT_STARTED = "retirement-started"
FATAL_ERROR = "fatal-error"


class EventChannel:
    """Synchronous named-event channel.

    Handlers run in registration order on the emitting thread. A handler
    that raises is logged and skipped; the remaining handlers still run.

    Usage:
        channel = EventChannel()
        channel.on(RETIREMENT_STARTED, lambda ms, cancel: cancel())
        channel.emit(RETIREMENT_STARTED, 5000.0, token)
    """

    def __init__(self, logger: Optional[LoggerProtocol] = None) -> None:
        self._handlers: Dict[str, List[Callable[..., Any]]] = {}
        self._logger = get_component_logger("EventChannel", logger)

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._handlers.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        try:
            self._handlers.get(event, []).remove(handler)
        except ValueError:
            pass

    def listeners(self, event: str) -> List[Callable[..., Any]]:
        return list(self._handlers.get(event, []))

    def emit(self, event: str, *args: Any) -> int:
        """Call every handler for ``event``; returns how many ran."""
        handlers = self.listeners(event)
        for handler in handlers:
            try:
                handler(*args)
            except Exception as e:
                self._logger.error(
                    "event_handler_error",
                    event_name=event,
                    error=str(e),
                )
        return len(handlers)


__all__ = ["EventChannel", "FATAL_ERROR", "RETIREMENT_STARTED"]
