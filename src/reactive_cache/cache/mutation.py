"""OptimisticMutationCoordinator – speculative write, remote call, commit or revert.

Protocol per mutation:

1. capture the key's current snapshot (possibly itself speculative);
2. apply the local transform to a deep copy and ``set`` the result, so
   subscribers see it before any network round trip;
3. await the remote operation;
4. on success, optionally reconcile with a forced refresh;
5. on failure, synchronously restore the captured snapshot and raise
   :class:`MutationError`.

Steps 3–5 run in a task of their own that callers await through
``asyncio.shield``: commit or revert always reaches the store, even if the
caller is cancelled half-way.
"""
from __future__ import annotations

import asyncio
import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable

from reactive_cache.cache.fetch import FetchCoordinator, Loader
from reactive_cache.cache.store import MISSING, CacheStore
from reactive_cache.kernel.errors import FetchError, MutationError
from reactive_cache.kernel.time import Clock, SystemClock
from reactive_cache.observability.logging import get_logger

__all__ = [
    "MutationStatus",
    "OptimisticMutation",
    "OptimisticMutationCoordinator",
    "RemoteOperation",
    "Transform",
]

logger = get_logger(__name__)

Transform = Callable[[Any], Any]
RemoteOperation = Callable[[], Awaitable[Any]]


class MutationStatus(str, Enum):
    PENDING = "PENDING"
    COMMITTED = "COMMITTED"
    REVERTED = "REVERTED"


@dataclass(eq=False)
class OptimisticMutation:
    key: str
    prior_snapshot: Any
    speculative_value: Any
    status: MutationStatus = MutationStatus.PENDING
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime | None = None
    error: BaseException | None = None


class OptimisticMutationCoordinator:
    """Apply local transforms ahead of their remote confirmation."""

    def __init__(
        self,
        store: CacheStore,
        fetcher: FetchCoordinator,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._clock = clock or SystemClock()
        self._pending: dict[str, list[OptimisticMutation]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    async def mutate(
        self,
        key: str,
        transform: Transform,
        remote: RemoteOperation,
        *,
        reconcile: bool = True,
        loader: Loader | None = None,
        resync_on_failure: bool = False,
    ) -> Any:
        """Run one optimistic mutation on *key* and return the remote result.

        *transform* receives a deep copy of the current value (``None`` when
        absent) and must return the speculative value. With *reconcile* the
        key is force-refreshed after the remote succeeds, using *loader* or
        the loader registered for the key; a failing reconcile is logged and
        leaves the speculative value in place. With *resync_on_failure* a
        forced refresh is also scheduled after a rollback.

        Raises:
            MutationError: the remote operation failed; the key already holds
                its pre-mutation snapshot again.
        """
        prior = self._store.peek(key)
        speculative = transform(copy.deepcopy(None if prior is MISSING else prior))
        mutation = OptimisticMutation(
            key=key,
            prior_snapshot=prior,
            speculative_value=speculative,
            started_at=self._clock.now(),
        )
        self._pending.setdefault(key, []).append(mutation)
        self._store.set(key, speculative)
        logger.debug("cache.mutation.applied", key=key, mutation_id=mutation.id)

        task = asyncio.get_running_loop().create_task(
            self._settle(mutation, remote, reconcile, loader, resync_on_failure),
            name=f"mutation:{key}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return await asyncio.shield(task)

    def pending(self, key: str) -> list[OptimisticMutation]:
        return list(self._pending.get(key, ()))

    def is_mutating(self, key: str) -> bool:
        return bool(self._pending.get(key))

    async def drain(self) -> None:
        """Wait until every started mutation has committed or reverted."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _settle(
        self,
        mutation: OptimisticMutation,
        remote: RemoteOperation,
        reconcile: bool,
        loader: Loader | None,
        resync_on_failure: bool,
    ) -> Any:
        try:
            result = await remote()
        except asyncio.CancelledError:
            self._revert(mutation, None)
            raise
        except Exception as exc:
            self._revert(mutation, exc)
            if resync_on_failure:
                self._fetcher.schedule_refresh(mutation.key, loader)
            raise MutationError(mutation.key, exc, mutation=mutation) from exc

        mutation.status = MutationStatus.COMMITTED
        self._forget(mutation)
        logger.debug("cache.mutation.committed", key=mutation.key, mutation_id=mutation.id)
        if reconcile:
            await self._reconcile(mutation.key, loader)
        return result

    def _revert(self, mutation: OptimisticMutation, error: BaseException | None) -> None:
        self._store.restore(mutation.key, mutation.prior_snapshot)
        mutation.status = MutationStatus.REVERTED
        mutation.error = error
        self._forget(mutation)
        logger.warning(
            "cache.mutation.reverted",
            key=mutation.key,
            mutation_id=mutation.id,
            error=repr(error) if error is not None else "cancelled",
        )

    async def _reconcile(self, key: str, loader: Loader | None) -> None:
        resolved = loader or self._fetcher.loader_for(key)
        if resolved is None:
            logger.debug("cache.mutation.reconcile_skipped", key=key, reason="no_loader")
            return
        try:
            await self._fetcher.get_or_fetch(key, resolved, force_refresh=True)
        except FetchError as exc:
            logger.warning("cache.mutation.reconcile_failed", **exc.log_fields())

    def _forget(self, mutation: OptimisticMutation) -> None:
        pending = self._pending.get(mutation.key)
        if not pending:
            return
        try:
            pending.remove(mutation)
        except ValueError:
            return
        if not pending:
            del self._pending[mutation.key]

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled():
            task.exception()
