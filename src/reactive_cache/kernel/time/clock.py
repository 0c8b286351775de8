"""Kernel time – Clock protocol + implementations.

Cache entries carry a wall-clock ``last_updated`` stamp for display and a
monotonic reading for age/staleness arithmetic; both come from a ``Clock``
so tests can pin and advance time deterministically.
"""
from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Port: abstract clock."""

    def now(self) -> datetime: ...
    def monotonic(self) -> float: ...


class SystemClock:
    """Production clock backed by ``datetime.now(UTC)`` and ``time.monotonic``."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock:
    """Test clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        self._elapsed = 0.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._elapsed

    def advance(self, seconds: float) -> None:
        """Move both readings forward by *seconds*."""
        self._now += timedelta(seconds=seconds)
        self._elapsed += seconds


__all__ = ["Clock", "ManualClock", "SystemClock"]
