"""Retirement controller.

Decides when the serving process retires itself and walks it through the
shutdown sequence:

    ARMED --trigger()--> RETIREMENT_PENDING --> TERMINATING --timer--> EXITED
                              |
                              +--cancel during notification--> CANCELLED

With a custom termination handler the controller hands off instead:

    ARMED --trigger()--> HANDED_OFF

``trigger()`` does real work at most once per controller. Cancelling keeps
``retirement_in_flight`` set unless ``rearm_after_cancel`` is configured.
"""

from __future__ import annotations

import functools
import logging
import os
import random
import sys
import threading
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from seppuku.config import RetirementConfig, build_config
from seppuku.events import FATAL_ERROR, RETIREMENT_STARTED
from seppuku.fatal import FatalErrorTrap
from seppuku.logging import get_component_logger
from seppuku.protocols import LoggerProtocol, RetirementHost, Scheduler, TimerHandle
from seppuku.timers import AutoScheduler


class RetirementState(str, Enum):
    """Lifecycle of a retirement controller."""

    ARMED = "armed"
    RETIREMENT_PENDING = "retirement_pending"
    TERMINATING = "terminating"
    EXITED = "exited"
    CANCELLED = "cancelled"
    HANDED_OFF = "handed_off"


def terminate_process(exit_code: int) -> None:
    """Terminate the process with ``exit_code``.

    On the main thread this raises SystemExit, which asyncio re-raises out
    of the running loop. Off the main thread SystemExit would only end the
    timer thread, so the process is ended directly.
    """
    if threading.current_thread() is threading.main_thread():
        sys.exit(exit_code)
    logging.shutdown()
    os._exit(exit_code)


class CancellationToken:
    """Cancellation capability handed to retirement-started observers.

    Calling the token (or ``cancel()``) clears the pending termination.
    Only the first call has an effect.
    """

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel = cancel
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._cancel()

    def __call__(self) -> None:
        self.cancel()


class RetirementController:
    """Retirement state machine for one serving process.

    Args:
        server: Host satisfying RetirementHost.
        config: RetirementConfig, a mapping of overrides, or None for defaults.
        scheduler: Timer facility for the deferral window.
        rng: Random source for the deferral draw.
        exit_func: Called with the exit code when the deferral elapses.
        logger: Injected logger.

    Raises:
        ConfigurationError: if ``config`` is invalid.
    """

    def __init__(
        self,
        server: RetirementHost,
        config: Union[RetirementConfig, Mapping[str, Any], None] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        rng: Optional[random.Random] = None,
        exit_func: Optional[Callable[[int], Any]] = None,
        logger: Optional[LoggerProtocol] = None,
    ) -> None:
        self._config = build_config(config)
        self._server = server
        self._scheduler = scheduler or AutoScheduler()
        self._rng = rng or random.Random()
        self._exit_func = exit_func or terminate_process
        self._logger = get_component_logger("RetirementController", logger, pid=os.getpid())

        # Guards the counters and flags below. Re-entrant because observers
        # cancel synchronously from inside trigger().
        self._lock = threading.RLock()
        self._request_count: float = 0
        self._in_flight = False
        self._timer: Optional[TimerHandle] = None
        # Bumped on every schedule and every cancel; a timer callback only
        # exits when its generation is still current.
        self._generation = 0
        self._state = RetirementState.ARMED
        self._deferral_ms: Optional[float] = None
        self._trap: Optional[FatalErrorTrap] = None
        self._installed = False

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def config(self) -> RetirementConfig:
        return self._config

    @property
    def server(self) -> RetirementHost:
        return self._server

    @property
    def request_count(self) -> float:
        return self._request_count

    @property
    def retirement_in_flight(self) -> bool:
        return self._in_flight

    @property
    def pending(self) -> bool:
        """True while a deferred termination is scheduled."""
        return self._timer is not None

    @property
    def state(self) -> RetirementState:
        return self._state

    @property
    def deferral_ms(self) -> Optional[float]:
        return self._deferral_ms

    @property
    def fatal_error_trap(self) -> Optional[FatalErrorTrap]:
        return self._trap

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "request_count": self._request_count,
                "max_requests": self._config.max_requests,
                "retirement_in_flight": self._in_flight,
                "pending": self._timer is not None,
                "deferral_ms": self._deferral_ms,
                "exit_code": self._config.exit_code,
            }

    # =========================================================================
    # WIRING
    # =========================================================================

    def install(self) -> "RetirementController":
        """Expose ``server.retire`` and, if configured, trap fatal errors."""
        if self._installed:
            return self
        self._installed = True

        self._server.retire = self.trigger
        if self._config.trap_fatal_errors:
            self._trap = FatalErrorTrap(self._on_fatal_error, logger=self._logger)
            self._trap.install()
            self._server.on(FATAL_ERROR, self._on_fatal_error)

        self._logger.info(
            "retirement_controller_installed",
            max_requests=self._config.max_requests,
            min_deferral_ms=self._config.min_deferral_time,
            max_deferral_ms=self._config.max_deferral_time,
            trap_fatal_errors=self._config.trap_fatal_errors,
        )
        return self

    def uninstall(self) -> None:
        """Remove process-wide hooks. The host keeps its ``retire`` attribute."""
        if self._trap is not None:
            self._trap.uninstall()
            self._trap = None
        self._installed = False

    def _on_fatal_error(self, exc: Optional[BaseException] = None) -> None:
        self._logger.warning(
            "fatal_error_trapped",
            error=str(exc) if exc is not None else None,
            error_type=type(exc).__name__ if exc is not None else None,
        )
        self.trigger()

    # =========================================================================
    # RETIREMENT SEQUENCE
    # =========================================================================

    def trigger(self) -> None:
        """Start retirement. Every call after the first is a no-op.

        ``retirement-started`` observers run with the controller lock held,
        so an expiring timer cannot exit the process while they decide
        whether to cancel. An observer must not block on another thread
        that calls into this controller. The custom termination handler,
        ``server.close()`` and the worker disconnect run without the lock.
        """
        with self._lock:
            if self._in_flight:
                self._logger.debug("retirement_already_in_flight", state=self._state.value)
                return
            self._in_flight = True

            handler = self._config.custom_termination_handler
            if handler is not None:
                self._state = RetirementState.HANDED_OFF
            elif not self._schedule_and_notify():
                return

        if handler is not None:
            self._logger.info("retirement_handed_off")
            handler()
            return

        self._stop_accepting()
        self._disconnect_worker()

    def _schedule_and_notify(self) -> bool:
        """Arm the exit timer and notify observers. Called with the lock held.

        Returns False when an observer cancelled during the notification.
        """
        deferral_ms = self._draw_deferral()
        self._deferral_ms = deferral_ms
        self._generation += 1
        generation = self._generation
        self._timer = self._scheduler.call_later(
            deferral_ms / 1000.0, functools.partial(self._terminate, generation)
        )
        self._state = RetirementState.RETIREMENT_PENDING
        self._logger.info("retirement_scheduled", deferral_ms=deferral_ms)

        self._server.emit(RETIREMENT_STARTED, deferral_ms, CancellationToken(self.kashaku))

        if generation != self._generation:
            self._logger.info("retirement_aborted", reason="cancelled_by_observer")
            return False

        self._state = RetirementState.TERMINATING
        return True

    def kashaku(self) -> None:
        """Cancel the pending termination and zero the request count."""
        with self._lock:
            was = self._state
            # A timer thread that already fired may be waiting on the lock;
            # bumping the generation turns its callback into a no-op.
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._request_count = 0

            if was not in (RetirementState.RETIREMENT_PENDING, RetirementState.TERMINATING):
                return

            if was is RetirementState.TERMINATING:
                # Connections are already stopped; only the exit is called off.
                self._logger.warning("retirement_cancelled_late")
                self._state = RetirementState.CANCELLED
                return

            if self._config.rearm_after_cancel:
                self._in_flight = False
                self._state = RetirementState.ARMED
                self._logger.info("retirement_cancelled", rearmed=True)
            else:
                self._state = RetirementState.CANCELLED
                self._logger.info("retirement_cancelled", rearmed=False)

    cancel = kashaku

    def _draw_deferral(self) -> float:
        low = self._config.min_deferral_time
        high = self._config.max_deferral_time
        if high <= low:
            return low
        # random() is in [0, 1), so the draw never reaches ``high``
        return low + self._rng.random() * (high - low)

    def _stop_accepting(self) -> None:
        try:
            self._server.close()
        except Exception:
            self._logger.exception("retirement_close_failed")

    def _disconnect_worker(self) -> None:
        worker = getattr(self._server, "worker", None)
        if worker is None:
            return
        try:
            worker.disconnect()
        except Exception:
            self._logger.exception("retirement_disconnect_failed")

    def _terminate(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                self._logger.debug("retirement_exit_skipped", reason="cancelled")
                return
            self._timer = None
            self._state = RetirementState.EXITED
        self._logger.info("retirement_exit", exit_code=self._config.exit_code)
        self._exit_func(self._config.exit_code)

    # =========================================================================
    # REQUEST COUNTING
    # =========================================================================

    def record_request(self, request: Any) -> None:
        """Count one request toward ``max_requests``; trigger on the threshold."""
        if not self._config.counting_enabled:
            return

        weight = self._weigh(request)
        with self._lock:
            self._request_count += weight
            count = self._request_count
            reached = count >= self._config.max_requests and not self._in_flight

        if reached:
            self._logger.info(
                "retirement_threshold_reached",
                request_count=count,
                max_requests=self._config.max_requests,
            )
            self.trigger()

    def _weigh(self, request: Any) -> float:
        weight_function = self._config.weight_function
        if weight_function is None:
            return 1
        try:
            weight = weight_function(request, self._request_count)
            negative = weight < 0
        except Exception:
            # Raised, or returned something that is not a number
            self._logger.exception("retirement_weight_failed")
            return 1
        if negative:
            self._logger.warning("retirement_negative_weight", weight=weight)
            return 0
        return weight


class RetirementInterceptor:
    """Request pipeline stage returned by ``create_controller``.

    Works as a Starlette/FastAPI function middleware:

        app.middleware("http")(create_controller(host, config))
    """

    def __init__(self, controller: RetirementController) -> None:
        self.controller = controller

    async def __call__(self, request: Any, call_next: Callable) -> Any:
        self.controller.record_request(request)
        return await call_next(request)


def create_controller(
    server: RetirementHost,
    config: Union[RetirementConfig, Mapping[str, Any], None] = None,
    **kwargs: Any,
) -> RetirementInterceptor:
    """Build and install a retirement controller for ``server``.

    Keyword arguments are passed through to RetirementController.

    Raises:
        ConfigurationError: if ``config`` is invalid; nothing is installed.
    """
    controller = RetirementController(server, config, **kwargs)
    controller.install()
    return RetirementInterceptor(controller)


__all__ = [
    "CancellationToken",
    "RetirementController",
    "RetirementInterceptor",
    "RetirementState",
    "create_controller",
    "terminate_process",
]
