"""Pytest configuration for the seppuku test suite.

Key Principles:
- No real process exit: ``exit_func`` records exit codes
- No real timers unless a test asks for one: FakeScheduler fires on demand
- Every controller a test creates is uninstalled afterwards, so
  interpreter-wide hooks never leak between tests
"""

import random
from typing import List

import pytest

from seppuku.controller import RetirementInterceptor, create_controller
from tests.fakes import FakeHost, FakeScheduler, FakeWorker


@pytest.fixture
def worker():
    return FakeWorker()


@pytest.fixture
def host(worker):
    return FakeHost(worker=worker)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def exit_codes():
    """Exit codes passed to the controller's exit function."""
    return []


@pytest.fixture
def make_interceptor(host, scheduler, exit_codes):
    """Factory for installed interceptors with deterministic collaborators.

    Fatal-error trapping is off unless the test turns it on.
    """
    created: List[RetirementInterceptor] = []

    def _make(config=None, **kwargs) -> RetirementInterceptor:
        values = {"trap_fatal_errors": False}
        values.update(config or {})
        kwargs.setdefault("scheduler", scheduler)
        kwargs.setdefault("rng", random.Random(1234))
        kwargs.setdefault("exit_func", exit_codes.append)
        interceptor = create_controller(kwargs.pop("server", host), values, **kwargs)
        created.append(interceptor)
        return interceptor

    yield _make

    for interceptor in created:
        interceptor.controller.uninstall()
