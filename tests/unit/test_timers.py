"""Tests for deferral schedulers."""

import asyncio
import threading

from seppuku.timers import AutoScheduler, LoopScheduler, ThreadScheduler


class TestLoopScheduler:
    async def test_fires_on_running_loop(self):
        fired = asyncio.Event()

        LoopScheduler().call_later(0.01, fired.set)

        await asyncio.wait_for(fired.wait(), timeout=2)

    async def test_cancelled_handle_never_fires(self):
        fired = []

        handle = LoopScheduler().call_later(0.01, lambda: fired.append(1))
        handle.cancel()
        await asyncio.sleep(0.05)

        assert fired == []

    async def test_explicit_loop(self):
        loop = asyncio.get_running_loop()

        handle = LoopScheduler(loop).call_later(10, lambda: None)

        assert isinstance(handle, asyncio.TimerHandle)
        handle.cancel()


class TestThreadScheduler:
    def test_timer_thread_is_daemon(self):
        fired = threading.Event()

        timer = ThreadScheduler().call_later(0.01, fired.set)

        assert timer.daemon is True
        assert fired.wait(timeout=2)

    def test_cancel_prevents_callback(self):
        fired = threading.Event()

        timer = ThreadScheduler().call_later(0.05, fired.set)
        timer.cancel()

        assert not fired.wait(timeout=0.2)


class TestAutoScheduler:
    async def test_uses_loop_when_running(self):
        handle = AutoScheduler().call_later(10, lambda: None)

        assert isinstance(handle, asyncio.TimerHandle)
        handle.cancel()

    def test_uses_thread_without_loop(self):
        timer = AutoScheduler().call_later(10, lambda: None)

        assert isinstance(timer, threading.Timer)
        assert timer.daemon is True
        timer.cancel()
