"""Cache-layer errors – failures of loaders and remote mutations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from reactive_cache.kernel.errors.base import ReactiveCacheError

if TYPE_CHECKING:
    from reactive_cache.cache.mutation import OptimisticMutation


class CacheError(ReactiveCacheError):
    """Base class for failures surfaced by the cache coordinators."""

    default_code = "cache_error"

    def __init__(
        self,
        message: str,
        *,
        key: str,
        detail: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, detail={"key": key, **(detail or {})}, cause=cause)
        self.key = key


class FetchError(CacheError):
    """A loader rejected.

    The previously cached value, if any, is untouched and still visible.
    Every caller sharing the in-flight fetch receives the same instance.
    """

    default_code = "fetch_failed"

    def __init__(self, key: str, cause: BaseException | None = None) -> None:
        reason = f": {cause}" if cause is not None else ""
        super().__init__(f"Fetch for '{key}' failed{reason}", key=key, cause=cause)


class MutationError(CacheError):
    """A remote operation rejected; the cache was already rolled back."""

    default_code = "mutation_failed"

    def __init__(
        self,
        key: str,
        cause: BaseException | None = None,
        *,
        mutation: OptimisticMutation | None = None,
    ) -> None:
        reason = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Mutation on '{key}' failed{reason}",
            key=key,
            detail={"mutation_id": mutation.id if mutation is not None else None},
            cause=cause,
        )
        self.mutation = mutation


class LoaderNotRegisteredError(CacheError):
    """No loader was passed and none is registered for the key."""

    default_code = "loader_not_registered"

    def __init__(self, key: str) -> None:
        super().__init__(f"No loader registered for '{key}'", key=key)


__all__ = [
    "CacheError",
    "FetchError",
    "LoaderNotRegisteredError",
    "MutationError",
]
