"""Process-wide fatal error trap.

Chains onto the interpreter's uncaught-error hooks:
  sys.excepthook        — uncaught exceptions on the main thread
  threading.excepthook  — uncaught exceptions in threads
  loop exception handler — unhandled errors in asyncio callbacks/tasks

Each hook reports the error and then hands it to the previous handler, so
default handling (tracebacks, exit status) is unchanged.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from typing import Any, Callable, Dict, Optional

from seppuku.logging import get_component_logger
from seppuku.protocols import LoggerProtocol

_NOT_ERRORS = (KeyboardInterrupt, SystemExit)


class FatalErrorTrap:
    """Observe uncaught errors at process scope without handling them."""

    def __init__(
        self,
        on_fatal: Callable[[Optional[BaseException]], Any],
        logger: Optional[LoggerProtocol] = None,
    ) -> None:
        self._on_fatal = on_fatal
        self._logger = get_component_logger("FatalErrorTrap", logger)
        self._installed = False
        self._prev_excepthook: Optional[Callable[..., Any]] = None
        self._prev_threading_excepthook: Optional[Callable[..., Any]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._prev_loop_handler: Optional[Callable[..., Any]] = None

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        """Install the interpreter hooks, and the loop hook if a loop is running."""
        if self._installed:
            return
        self._installed = True

        self._prev_excepthook = sys.excepthook
        sys.excepthook = self._excepthook

        self._prev_threading_excepthook = threading.excepthook
        threading.excepthook = self._threading_excepthook

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self.install_loop(loop)

    def install_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Chain onto ``loop``'s exception handler."""
        if self._loop is loop:
            return
        self._uninstall_loop()
        self._loop = loop
        self._prev_loop_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._loop_exception_handler)

    def uninstall(self) -> None:
        """Restore the previous hooks where ours are still in place."""
        if not self._installed:
            return
        self._installed = False

        if sys.excepthook == self._excepthook:
            sys.excepthook = self._prev_excepthook or sys.__excepthook__
        if threading.excepthook == self._threading_excepthook:
            threading.excepthook = self._prev_threading_excepthook or threading.__excepthook__
        self._uninstall_loop()

    def _uninstall_loop(self) -> None:
        loop = self._loop
        if loop is None:
            return
        if not loop.is_closed() and loop.get_exception_handler() == self._loop_exception_handler:
            loop.set_exception_handler(self._prev_loop_handler)
        self._loop = None
        self._prev_loop_handler = None

    # =========================================================================
    # HOOKS
    # =========================================================================

    def _report(self, exc: Optional[BaseException]) -> None:
        if exc is None or isinstance(exc, _NOT_ERRORS):
            return
        try:
            self._on_fatal(exc)
        except Exception:
            # The original error must still reach the previous handler
            self._logger.exception("fatal_error_trap_failed")

    def _excepthook(self, exc_type: Any, exc: BaseException, tb: Any) -> None:
        try:
            self._report(exc)
        finally:
            previous = self._prev_excepthook or sys.__excepthook__
            previous(exc_type, exc, tb)

    def _threading_excepthook(self, args: Any) -> None:
        try:
            self._report(args.exc_value)
        finally:
            previous = self._prev_threading_excepthook or threading.__excepthook__
            previous(args)

    def _loop_exception_handler(
        self,
        loop: asyncio.AbstractEventLoop,
        context: Dict[str, Any],
    ) -> None:
        try:
            self._report(context.get("exception"))
        finally:
            if self._prev_loop_handler is not None:
                self._prev_loop_handler(loop, context)
            else:
                loop.default_exception_handler(context)


__all__ = ["FatalErrorTrap"]
