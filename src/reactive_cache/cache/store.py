"""CacheStore – process-wide snapshot store with per-key subscribers.

The store knows nothing about what values mean. Writes are synchronous and
notify subscribers on the same turn, in subscription order; a write issued
from inside a subscriber is queued behind the delivery in progress so every
subscriber observes writes in the order they were issued.
"""
from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from reactive_cache.cache.keys import CacheModule, module_for_key
from reactive_cache.kernel.time import Clock, SystemClock
from reactive_cache.observability.logging import get_logger

__all__ = [
    "MISSING",
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "Subscription",
]

logger = get_logger(__name__)

Callback = Callable[[Any], None]


class _Missing:
    """Sentinel for "no value", distinct from a cached ``None``."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Missing:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Missing:
        return self


MISSING: Any = _Missing()


@dataclass(eq=False)
class Subscription:
    """A ``(key, callback)`` pair owned by a consumer.

    The subscription itself is the disposer: call it (or ``unsubscribe()``)
    on teardown. Disposing twice, or after the entry was dropped, is a no-op.
    """

    key: str
    callback: Callback
    _store: CacheStore | None = field(default=None, repr=False)
    active: bool = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        store, self._store = self._store, None
        if store is not None:
            store._detach(self)

    def __call__(self) -> None:
        self.unsubscribe()


@dataclass(eq=False)
class CacheEntry:
    """One per key; created lazily and kept for the life of the store."""

    key: str
    value: Any = MISSING
    last_updated: datetime | None = None
    updated_at: float | None = None
    module: CacheModule | None = None
    subscribers: list[Subscription] = field(default_factory=list)
    _queue: deque[Any] = field(default_factory=deque, repr=False)
    _delivering: bool = field(default=False, repr=False)

    @property
    def has_value(self) -> bool:
        return self.value is not MISSING


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    populated_entries: int
    entries_by_module: dict[str, int]
    hits: int
    misses: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    @property
    def miss_rate(self) -> float:
        total = self.hits + self.misses
        return self.misses / total if total else 0.0


class CacheStore:
    """Key/value store of cached resource snapshots.

    Construct one per process and hand it to every consumer; there is no
    module-level instance.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.has_value

    def get(self, key: str, default: Any = None) -> Any:
        found, value = self.lookup(key)
        return value if found else default

    def lookup(self, key: str) -> tuple[bool, Any]:
        """``(found, value)`` in one read; counts a hit or a miss."""
        entry = self._entry(key)
        if not entry.has_value:
            self._misses += 1
            return False, None
        self._hits += 1
        return True, entry.value

    def peek(self, key: str) -> Any:
        """Current value or ``MISSING``; does not count towards stats."""
        entry = self._entries.get(key)
        return MISSING if entry is None else entry.value

    def entry(self, key: str) -> CacheEntry:
        return self._entry(key)

    def keys(self) -> list[str]:
        return list(self._entries)

    def last_updated(self, key: str) -> datetime | None:
        entry = self._entries.get(key)
        return None if entry is None else entry.last_updated

    def age(self, key: str) -> float | None:
        """Seconds since the last write, or ``None`` when never written."""
        entry = self._entries.get(key)
        if entry is None or entry.updated_at is None or not entry.has_value:
            return None
        return self._clock.monotonic() - entry.updated_at

    def is_stale(self, key: str, max_age: float) -> bool:
        age = self.age(key)
        return age is None or age >= max_age

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        if value is MISSING:
            raise ValueError("use restore() or invalidate() to clear a value")
        entry = self._entry(key)
        entry.value = value
        entry.last_updated = self._clock.now()
        entry.updated_at = self._clock.monotonic()
        self._notify(entry, value)

    def update(self, key: str, fn: Callable[[Any], Any]) -> Any:
        """Read-modify-write; *fn* receives the current value or ``None``."""
        current = self.peek(key)
        value = fn(None if current is MISSING else current)
        self.set(key, value)
        return value

    def restore(self, key: str, snapshot: Any) -> None:
        """Write back a snapshot taken with :meth:`peek`.

        Restoring ``MISSING`` clears the value and notifies with ``None``.
        """
        if snapshot is not MISSING:
            self.set(key, snapshot)
            return
        entry = self._entry(key)
        entry.value = MISSING
        entry.last_updated = self._clock.now()
        entry.updated_at = None
        self._notify(entry, None)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, key: str, callback: Callback) -> Subscription:
        entry = self._entry(key)
        subscription = Subscription(key=key, callback=callback, _store=self)
        entry.subscribers.append(subscription)
        return subscription

    def subscriber_count(self, key: str) -> int:
        entry = self._entries.get(key)
        return 0 if entry is None else len(entry.subscribers)

    def _detach(self, subscription: Subscription) -> None:
        entry = self._entries.get(subscription.key)
        if entry is None:
            return
        try:
            entry.subscribers.remove(subscription)
        except ValueError:
            pass

    def _notify(self, entry: CacheEntry, value: Any) -> None:
        entry._queue.append(value)
        if entry._delivering:
            return
        entry._delivering = True
        try:
            while entry._queue:
                current = entry._queue.popleft()
                for subscription in list(entry.subscribers):
                    if not subscription.active:
                        continue
                    try:
                        subscription.callback(current)
                    except Exception:  # noqa: BLE001
                        logger.exception("cache.subscriber_failed", key=entry.key)
        finally:
            entry._queue.clear()
            entry._delivering = False

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate(self, key: str) -> bool:
        """Drop *key*'s value so the next fetch goes to the loader.

        Subscribers are kept and not notified.
        """
        entry = self._entries.get(key)
        if entry is None or not entry.has_value:
            return False
        entry.value = MISSING
        entry.updated_at = None
        return True

    def invalidate_module(self, module: CacheModule) -> int:
        return self._invalidate_where(lambda e: e.module is module)

    def invalidate_pattern(self, pattern: str | re.Pattern[str]) -> int:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        return self._invalidate_where(lambda e: regex.search(e.key) is not None)

    def invalidate_user(self, user_id: str) -> int:
        """Invalidate every key scoped to *user_id* (logout / account switch)."""
        return self.invalidate_pattern(rf"[:_]{re.escape(user_id)}($|:)")

    def drop(self, key: str) -> None:
        """Remove the entry entirely; its subscriptions become inert."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for subscription in entry.subscribers:
            subscription.active = False
            subscription._store = None
        entry.subscribers.clear()

    def clear(self) -> None:
        """Invalidate every key and reset hit/miss counters."""
        for entry in self._entries.values():
            entry.value = MISSING
            entry.updated_at = None
        self.reset_stats()

    def _invalidate_where(self, predicate: Callable[[CacheEntry], bool]) -> int:
        removed = 0
        for entry in self._entries.values():
            if entry.has_value and predicate(entry):
                entry.value = MISSING
                entry.updated_at = None
                removed += 1
        if removed:
            logger.debug("cache.invalidated", entries=removed)
        return removed

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self) -> CacheStats:
        by_module: dict[str, int] = {m.value: 0 for m in CacheModule}
        by_module["unassigned"] = 0
        populated = 0
        for entry in self._entries.values():
            if not entry.has_value:
                continue
            populated += 1
            by_module[entry.module.value if entry.module else "unassigned"] += 1
        return CacheStats(
            total_entries=len(self._entries),
            populated_entries=populated,
            entries_by_module=by_module,
            hits=self._hits,
            misses=self._misses,
        )

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0

    def _entry(self, key: str) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key, module=module_for_key(key))
            self._entries[key] = entry
        return entry
