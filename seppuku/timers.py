"""Deferred-termination timers.

A pending retirement timer must never be the reason a process stays up:
  LoopScheduler   — asyncio ``loop.call_later``; a pending handle does not
                    keep ``asyncio.run`` / ``run_until_complete`` alive
  ThreadScheduler — daemon ``threading.Timer``; daemon threads do not keep
                    the interpreter alive
  AutoScheduler   — picks the loop when called on one, else a thread
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Optional

from seppuku.protocols import TimerHandle


class LoopScheduler:
    """Schedule on an asyncio event loop (the running one if not given)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class ThreadScheduler:
    """Schedule on a daemon timer thread."""

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.name = "seppuku-deferral"
        timer.start()
        return timer


class AutoScheduler:
    """Use the running event loop when there is one, a daemon thread otherwise.

    Retirement can be triggered from inside a request (loop running) or from
    ``sys.excepthook`` after the loop is gone.
    """

    def __init__(self) -> None:
        self._threads = ThreadScheduler()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return self._threads.call_later(delay, callback)
        return loop.call_later(delay, callback)


__all__ = ["AutoScheduler", "LoopScheduler", "ThreadScheduler"]
