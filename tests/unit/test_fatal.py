"""Tests for the process-wide fatal error trap."""

import asyncio
import sys
import threading

import pytest

from seppuku.fatal import FatalErrorTrap


@pytest.fixture
def previous_hooks(monkeypatch):
    """Replace sys.excepthook with a recorder for the test's duration."""
    seen = {"sys": []}
    monkeypatch.setattr(sys, "excepthook", lambda *args: seen["sys"].append(args))
    return seen


@pytest.fixture
def trap_factory():
    traps = []

    def _make(on_fatal, **kwargs):
        trap = FatalErrorTrap(on_fatal, **kwargs)
        traps.append(trap)
        return trap

    yield _make

    for trap in traps:
        trap.uninstall()


class TestExcepthook:
    def test_reports_then_chains_to_previous(self, previous_hooks, trap_factory):
        reported = []
        trap = trap_factory(reported.append)
        trap.install()

        error = RuntimeError("uncaught")
        sys.excepthook(RuntimeError, error, None)

        assert reported == [error]
        assert previous_hooks["sys"] == [(RuntimeError, error, None)]

    def test_interrupts_are_not_reported(self, previous_hooks, trap_factory):
        reported = []
        trap_factory(reported.append).install()

        sys.excepthook(KeyboardInterrupt, KeyboardInterrupt(), None)

        assert reported == []
        assert len(previous_hooks["sys"]) == 1

    def test_failing_callback_still_chains(self, previous_hooks, trap_factory, mock_logger):
        def on_fatal(exc):
            raise ValueError("trigger failed")

        trap_factory(on_fatal, logger=mock_logger).install()

        sys.excepthook(RuntimeError, RuntimeError("uncaught"), None)

        mock_logger.exception.assert_called_once_with("fatal_error_trap_failed")
        assert len(previous_hooks["sys"]) == 1

    def test_uninstall_restores_previous(self, previous_hooks, trap_factory):
        original_sys, original_threading = sys.excepthook, threading.excepthook
        trap = trap_factory(lambda exc: None)

        trap.install()
        assert trap.installed is True
        assert sys.excepthook is not original_sys

        trap.uninstall()
        assert trap.installed is False
        assert sys.excepthook is original_sys
        assert threading.excepthook is original_threading

    def test_install_twice_does_not_double_chain(self, previous_hooks, trap_factory):
        reported = []
        trap = trap_factory(reported.append)
        trap.install()
        trap.install()

        sys.excepthook(RuntimeError, RuntimeError("uncaught"), None)

        assert len(reported) == 1
        assert len(previous_hooks["sys"]) == 1


class TestThreadingExcepthook:
    def test_thread_errors_reported_and_chained(self):
        reported = []
        chained = []
        saved = threading.excepthook
        threading.excepthook = chained.append
        trap = FatalErrorTrap(reported.append)

        def work():
            raise RuntimeError("thread crashed")

        try:
            trap.install()
            thread = threading.Thread(target=work)
            thread.start()
            thread.join()
        finally:
            trap.uninstall()
            threading.excepthook = saved

        assert len(reported) == 1
        assert str(reported[0]) == "thread crashed"
        assert len(chained) == 1


class TestLoopExceptionHandler:
    async def test_callback_errors_reported(self, trap_factory):
        reported = []
        chained = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda loop, context: chained.append(context))

        trap = trap_factory(reported.append)
        trap.install()

        def crash():
            raise RuntimeError("callback crashed")

        loop.call_soon(crash)
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert len(reported) == 1
        assert str(reported[0]) == "callback crashed"
        assert len(chained) == 1

        trap.uninstall()
        assert loop.get_exception_handler() is not None
        assert loop.get_exception_handler() != trap._loop_exception_handler
        loop.set_exception_handler(None)

    async def test_contexts_without_exception_not_reported(self, trap_factory):
        reported = []
        chained = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda loop, context: chained.append(context))

        trap = trap_factory(reported.append)
        trap.install()

        loop.call_exception_handler({"message": "task destroyed but pending"})

        assert reported == []
        assert len(chained) == 1

        trap.uninstall()
        loop.set_exception_handler(None)
