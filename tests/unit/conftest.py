"""Shared fixtures for unit tests."""

from __future__ import annotations

import logging

import pytest
import structlog

from reactive_cache.runtime import CacheRuntime
from reactive_cache.testing import FakeBackend, ManualClock


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def runtime(clock: ManualClock) -> CacheRuntime:
    return CacheRuntime(clock=clock)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def restore_logging():
    """Undo ``configure_logging`` side effects on the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
