"""CacheRuntime – the per-process bundle every consumer is built against.

Lifecycle: build one at application start (``CacheRuntime.from_settings``)
and pass it to each consumer. Nothing needs tearing down before process
exit; ``aclose()`` waits for in-flight fetches and mutations, which tests
and orderly shutdowns use.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from reactive_cache.cache.fetch import FetchCoordinator, Loader
from reactive_cache.cache.keys import module_for_key
from reactive_cache.cache.mutation import OptimisticMutationCoordinator, RemoteOperation, Transform
from reactive_cache.cache.realtime import RealtimeBridge
from reactive_cache.cache.store import CacheStore, Subscription
from reactive_cache.config.settings import CacheSettings
from reactive_cache.kernel.time import Clock, SystemClock
from reactive_cache.observability.logging import configure_logging, get_logger

__all__ = ["CacheRuntime", "KeyState"]

logger = get_logger(__name__)


@dataclass(frozen=True)
class KeyState:
    """Where a key stands: ``IDLE``, ``FETCHING``, and/or ``MUTATING``.

    Fetching and mutating are independent and may overlap.
    """

    fetching: bool
    mutating: bool

    @property
    def idle(self) -> bool:
        return not (self.fetching or self.mutating)

    @property
    def label(self) -> str:
        if self.idle:
            return "IDLE"
        return "+".join(n for n, on in (("FETCHING", self.fetching), ("MUTATING", self.mutating)) if on)


class CacheRuntime:
    def __init__(
        self,
        settings: CacheSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings or CacheSettings()
        self.clock = clock or SystemClock()
        self.store = CacheStore(clock=self.clock)
        self.fetcher = FetchCoordinator(
            self.store,
            ttl_policy=self._ttl_for if self.settings.revalidate_stale else None,
        )
        self.mutations = OptimisticMutationCoordinator(self.store, self.fetcher, clock=self.clock)
        self.realtime = RealtimeBridge(self.fetcher)

    @classmethod
    def from_settings(cls, settings: CacheSettings, *, clock: Clock | None = None) -> CacheRuntime:
        """Configure logging from *settings* and build the runtime."""
        configure_logging(settings.log_level, json_output=settings.log_json)
        runtime = cls(settings, clock=clock)
        logger.info("cache.runtime.started", revalidate_stale=settings.revalidate_stale)
        return runtime

    # ------------------------------------------------------------------
    # Consumer-facing API
    # ------------------------------------------------------------------

    def has(self, key: str) -> bool:
        return self.store.has(key)

    def get(self, key: str, default: Any = None) -> Any:
        return self.store.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.store.set(key, value)

    def update(self, key: str, fn: Callable[[Any], Any]) -> Any:
        return self.store.update(key, fn)

    def subscribe(self, key: str, callback: Callable[[Any], None]) -> Subscription:
        return self.store.subscribe(key, callback)

    async def get_or_fetch(
        self,
        key: str,
        loader: Loader | None = None,
        *,
        force_refresh: bool = False,
    ) -> Any:
        return await self.fetcher.get_or_fetch(key, loader, force_refresh=force_refresh)

    async def mutate(
        self,
        key: str,
        transform: Transform,
        remote: RemoteOperation,
        **options: Any,
    ) -> Any:
        return await self.mutations.mutate(key, transform, remote, **options)

    async def preload(self, loaders: Mapping[str, Loader]) -> dict[str, Any]:
        """Warm the cache at startup or sign-in; failures don't stop the rest."""
        results = await self.fetcher.prefetch(loaders)
        failed = [k for k, v in results.items() if isinstance(v, BaseException)]
        logger.info("cache.preload.completed", keys=len(results), failed=failed)
        return results

    def key_state(self, key: str) -> KeyState:
        return KeyState(
            fetching=self.fetcher.is_fetching(key),
            mutating=self.mutations.is_mutating(key),
        )

    async def aclose(self) -> None:
        await self.mutations.drain()
        await self.fetcher.drain()

    def _ttl_for(self, key: str) -> float | None:
        return self.settings.ttl_for(module_for_key(key))
