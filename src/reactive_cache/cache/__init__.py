"""Cache core – store, fetch deduplication, optimistic mutations, realtime."""
from reactive_cache.cache.fetch import FetchCoordinator, InFlightFetch, Loader
from reactive_cache.cache.keys import CacheKeys, CacheModule, module_for_key
from reactive_cache.cache.mutation import (
    MutationStatus,
    OptimisticMutation,
    OptimisticMutationCoordinator,
)
from reactive_cache.cache.realtime import EventKind, RealtimeBridge, ServerEvent
from reactive_cache.cache.store import MISSING, CacheEntry, CacheStats, CacheStore, Subscription

__all__ = [
    "MISSING",
    "CacheEntry",
    "CacheKeys",
    "CacheModule",
    "CacheStats",
    "CacheStore",
    "EventKind",
    "FetchCoordinator",
    "InFlightFetch",
    "Loader",
    "MutationStatus",
    "OptimisticMutation",
    "OptimisticMutationCoordinator",
    "RealtimeBridge",
    "ServerEvent",
    "Subscription",
    "module_for_key",
]
