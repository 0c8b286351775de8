"""FetchCoordinator – at most one loader execution in flight per key.

Every caller asking for a key while its loader runs awaits the same task,
so N concurrent ``get_or_fetch`` calls trigger one loader invocation and
resolve together. Callers wait through ``asyncio.shield``: a caller that is
cancelled (a consumer unmounting) leaves the shared fetch running for the
others.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from reactive_cache.cache.store import CacheStore
from reactive_cache.kernel.errors import FetchError, LoaderNotRegisteredError
from reactive_cache.observability.logging import get_logger

__all__ = ["FetchCoordinator", "InFlightFetch", "Loader", "TtlPolicy"]

logger = get_logger(__name__)

Loader = Callable[[], Awaitable[Any]]
TtlPolicy = Callable[[str], float | None]


@dataclass(eq=False)
class InFlightFetch:
    """Transient record of a running loader; removed when it settles."""

    key: str
    task: asyncio.Task[Any]
    forced: bool = False
    waiters: int = 0
    started_at: float = field(default_factory=time.monotonic)


class FetchCoordinator:
    """Populate a :class:`CacheStore` through deduplicated loader calls."""

    def __init__(self, store: CacheStore, ttl_policy: TtlPolicy | None = None) -> None:
        self._store = store
        self._ttl_policy = ttl_policy
        self._in_flight: dict[str, InFlightFetch] = {}
        self._loaders: dict[str, list[list[Loader]]] = {}
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def store(self) -> CacheStore:
        return self._store

    # ------------------------------------------------------------------
    # Loader registry
    # ------------------------------------------------------------------

    def register(self, key: str, loader: Loader) -> Callable[[], None]:
        """Add *loader* for *key*; returns a disposer.

        Several consumers may register for the same key. The most recent
        live registration is the one used, and each disposer removes only
        its own entry.
        """
        registration = [loader]
        self._loaders.setdefault(key, []).append(registration)

        def dispose() -> None:
            stack = self._loaders.get(key)
            if stack is None:
                return
            stack[:] = [r for r in stack if r is not registration]
            if not stack:
                del self._loaders[key]

        return dispose

    def loader_for(self, key: str) -> Loader | None:
        stack = self._loaders.get(key)
        return stack[-1][0] if stack else None

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def get_or_fetch(
        self,
        key: str,
        loader: Loader | None = None,
        *,
        force_refresh: bool = False,
        stale_after: float | None = None,
    ) -> Any:
        """Return the cached value for *key*, loading it if needed.

        Without *force_refresh* a cached value is returned as-is and the
        loader is not called. When a max age applies (*stale_after* or the
        TTL policy) and the value is older, it is still returned and one
        background refresh is started.

        Raises:
            FetchError: the loader failed; the cache is left untouched.
            LoaderNotRegisteredError: nothing to load with.
        """
        if not force_refresh:
            found, value = self._store.lookup(key)
            if found:
                max_age = stale_after if stale_after is not None else self._ttl_for(key)
                if max_age is not None and self._store.is_stale(key, max_age):
                    self.schedule_refresh(key, loader)
                return value

        inflight = self._in_flight.get(key)
        if inflight is None:
            inflight = self._start(key, self._resolve(key, loader), forced=force_refresh)
        else:
            logger.debug("cache.fetch.coalesced", key=key, forced=force_refresh, waiters=inflight.waiters + 1)
        return await self._wait(inflight)

    def schedule_refresh(self, key: str, loader: Loader | None = None) -> asyncio.Task[Any] | None:
        """Start a forced refresh nobody awaits; failures are only logged."""
        if (loader or self.loader_for(key)) is None and key not in self._in_flight:
            logger.debug("cache.fetch.refresh_skipped", key=key, reason="no_loader")
            return None
        task = asyncio.get_running_loop().create_task(
            self._refresh_quietly(key, loader), name=f"refresh:{key}"
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def prefetch(
        self,
        loaders: Mapping[str, Loader],
        *,
        force_refresh: bool = False,
    ) -> dict[str, Any]:
        """Warm several keys at once.

        Every key settles independently; the result maps each key to its
        value or to the exception its fetch raised.
        """
        keys = list(loaders)
        results = await asyncio.gather(
            *(self.get_or_fetch(k, loaders[k], force_refresh=force_refresh) for k in keys),
            return_exceptions=True,
        )
        return dict(zip(keys, results))

    def is_fetching(self, key: str) -> bool:
        return key in self._in_flight

    def in_flight(self, key: str) -> InFlightFetch | None:
        return self._in_flight.get(key)

    async def drain(self) -> None:
        """Wait for every running fetch and background refresh to settle."""
        pending = [f.task for f in self._in_flight.values()] + list(self._background)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, key: str, loader: Loader | None) -> Loader:
        resolved = loader or self.loader_for(key)
        if resolved is None:
            raise LoaderNotRegisteredError(key)
        return resolved

    def _ttl_for(self, key: str) -> float | None:
        return self._ttl_policy(key) if self._ttl_policy is not None else None

    def _start(self, key: str, loader: Loader, *, forced: bool) -> InFlightFetch:
        task = asyncio.get_running_loop().create_task(self._run(key, loader, forced), name=f"fetch:{key}")
        task.add_done_callback(_retrieve_exception)
        inflight = InFlightFetch(key=key, task=task, forced=forced)
        self._in_flight[key] = inflight
        return inflight

    async def _run(self, key: str, loader: Loader, forced: bool) -> Any:
        task = asyncio.current_task()
        started = time.monotonic()
        logger.debug("cache.fetch.started", key=key, forced=forced)
        try:
            try:
                value = await loader()
            except FetchError as exc:
                logger.warning("cache.fetch.failed", **exc.log_fields())
                raise
            except Exception as exc:
                logger.warning("cache.fetch.failed", key=key, error=repr(exc))
                raise FetchError(key, exc) from exc
            self._store.set(key, value)
            logger.debug(
                "cache.fetch.completed",
                key=key,
                duration_ms=round((time.monotonic() - started) * 1000, 2),
            )
            return value
        finally:
            current = self._in_flight.get(key)
            if current is not None and current.task is task:
                del self._in_flight[key]

    async def _wait(self, inflight: InFlightFetch) -> Any:
        inflight.waiters += 1
        try:
            return await asyncio.shield(inflight.task)
        finally:
            inflight.waiters -= 1

    async def _refresh_quietly(self, key: str, loader: Loader | None) -> Any:
        try:
            return await self.get_or_fetch(key, loader, force_refresh=True)
        except FetchError:
            # already logged by _run
            return None
        except LoaderNotRegisteredError:
            logger.debug("cache.fetch.refresh_skipped", key=key, reason="no_loader")
            return None


def _retrieve_exception(task: asyncio.Task[Any]) -> None:
    if not task.cancelled():
        task.exception()
