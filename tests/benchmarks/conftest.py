"""conftest.py for benchmarks.

One event loop is shared by the whole session so loop startup does not
show up in per-call timings.
"""

from __future__ import annotations

import asyncio

import pytest


@pytest.fixture(scope="session")
def event_loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()
