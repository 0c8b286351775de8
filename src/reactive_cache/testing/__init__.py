"""Testing helpers – fake backend, loader doubles and a manual clock."""
from reactive_cache.kernel.time import ManualClock
from reactive_cache.testing.fakes import CountingLoader, FakeBackend, Gate

__all__ = ["CountingLoader", "FakeBackend", "Gate", "ManualClock"]
