"""Consumer – feature-level state container over one cache key.

Lifecycle::

    cart = CartConsumer(runtime, backend, user_id="u1")
    await cart.start()        # mount() + load()
    ...
    cart.teardown()           # disposes only what this consumer registered

``mount()`` reads the cache synchronously, so a consumer created after
another one has already loaded the key starts with data and
``loading=False``. Teardown never cancels shared fetches or in-flight
mutations.
"""
from __future__ import annotations

import abc
from typing import Any, Callable, Mapping

from reactive_cache.cache.store import MISSING
from reactive_cache.kernel.errors import FetchError
from reactive_cache.observability.logging import get_logger
from reactive_cache.runtime import CacheRuntime

__all__ = ["Consumer", "Listener"]

logger = get_logger(__name__)

Listener = Callable[["Consumer"], None]


class Consumer(abc.ABC):
    def __init__(self, runtime: CacheRuntime, on_change: Listener | None = None) -> None:
        self._runtime = runtime
        self._on_change = on_change
        self._disposers: list[Callable[[], None]] = []
        self._value: Any = None
        self.loading = False
        self.error: FetchError | None = None
        self.mounted = False

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @property
    @abc.abstractmethod
    def key(self) -> str: ...

    @abc.abstractmethod
    async def fetch(self) -> Any:
        """Loader for :attr:`key`: perform the remote read."""

    def realtime_watches(self) -> list[tuple[str, Mapping[str, Any]]]:
        """``(table, match)`` pairs whose changes should refresh :attr:`key`."""
        return []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def value(self) -> Any:
        return self._value

    def mount(self) -> None:
        if self.mounted:
            return
        cached = self._runtime.store.peek(self.key)
        self._value = None if cached is MISSING else cached
        self.loading = cached is MISSING
        self._disposers.append(self._runtime.fetcher.register(self.key, self.fetch))
        self._disposers.append(self._runtime.subscribe(self.key, self._receive))
        for table, match in self.realtime_watches():
            self._disposers.append(self._runtime.realtime.watch(table, self.key, match=match))
        self.mounted = True

    async def start(self) -> Any:
        self.mount()
        return await self.load()

    async def load(self, force_refresh: bool = False) -> Any:
        """Populate through the shared fetch; the error is kept and re-raised."""
        if not self._runtime.has(self.key):
            self.loading = True
        try:
            await self._runtime.get_or_fetch(self.key, self.fetch, force_refresh=force_refresh)
        except FetchError as exc:
            self.error = exc
            logger.warning("consumer.load_failed", consumer=type(self).__name__, **exc.log_fields())
            raise
        finally:
            self.loading = False
        self.error = None
        self._value = self._snapshot()
        return self._value

    async def refresh(self) -> Any:
        return await self.load(force_refresh=True)

    def teardown(self) -> None:
        while self._disposers:
            self._disposers.pop()()
        self.mounted = False

    def _snapshot(self) -> Any:
        """Current cache value for :attr:`key` (``None`` when absent), mounted or not."""
        value = self._runtime.store.peek(self.key)
        return None if value is MISSING else value

    def _receive(self, value: Any) -> None:
        self._value = value
        self.loading = False
        if self._on_change is not None:
            self._on_change(self)

    async def _mutate(self, transform: Callable[[Any], Any], remote: Callable[[], Any], **options: Any) -> Any:
        """Optimistic mutation on :attr:`key`, reconciled through :meth:`fetch`."""
        options.setdefault("loader", self.fetch)
        return await self._runtime.mutate(self.key, transform, remote, **options)
