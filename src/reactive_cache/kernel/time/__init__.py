"""Kernel time – clock port and implementations."""
from reactive_cache.kernel.time.clock import Clock, ManualClock, SystemClock

__all__ = ["Clock", "ManualClock", "SystemClock"]
