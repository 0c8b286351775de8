"""RealtimeBridge – push notifications turn into forced refetches.

Payloads are never merged into the cache: an event only says "the resource
behind this key changed", and the bridge answers with a forced
``get_or_fetch`` through the key's registered loader. Because that goes
through the fetch coordinator's in-flight registry, an event arriving while
a fetch is already running joins it instead of starting a second one.

Transports either call :meth:`RealtimeBridge.on_server_event` with a key,
or hand table-change events to :meth:`RealtimeBridge.handle` and let the
watch table route them to keys.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

from reactive_cache.cache.fetch import FetchCoordinator
from reactive_cache.observability.logging import get_logger

__all__ = ["EventKind", "RealtimeBridge", "ServerEvent"]

logger = get_logger(__name__)


class EventKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ANY = "*"

    @classmethod
    def parse(cls, value: EventKind | str) -> EventKind:
        if isinstance(value, EventKind):
            return value
        return cls(value.upper())


@dataclass(frozen=True)
class ServerEvent:
    """A backend row change as delivered by the push transport."""

    table: str
    kind: EventKind
    record: Mapping[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class _Watch:
    table: str
    key: str
    match: Mapping[str, Any]
    kinds: frozenset[EventKind] | None

    def accepts(self, event: ServerEvent) -> bool:
        if event.table != self.table:
            return False
        if (
            self.kinds is not None
            and EventKind.ANY not in self.kinds
            and event.kind not in self.kinds
            and event.kind is not EventKind.ANY
        ):
            return False
        return all(event.record.get(f) == v for f, v in self.match.items())


class RealtimeBridge:
    def __init__(self, fetcher: FetchCoordinator) -> None:
        self._fetcher = fetcher
        self._watches: list[_Watch] = []

    async def on_server_event(self, key: str, kind: EventKind | str = EventKind.ANY) -> Any:
        """Force-refresh *key*; returns the fresh value.

        Keys nobody registered a loader for are skipped and ``None`` is
        returned. Loader failures propagate as :class:`FetchError`.
        """
        kind = EventKind.parse(kind)
        loader = self._fetcher.loader_for(key)
        if loader is None and not self._fetcher.is_fetching(key):
            logger.debug("realtime.event_ignored", key=key, kind=kind.value, reason="no_loader")
            return None
        logger.debug("realtime.event", key=key, kind=kind.value)
        return await self._fetcher.get_or_fetch(key, loader, force_refresh=True)

    def notify(self, key: str, kind: EventKind | str = EventKind.ANY) -> asyncio.Task[Any] | None:
        """Fire-and-forget form of :meth:`on_server_event` for sync transports."""
        kind = EventKind.parse(kind)
        logger.debug("realtime.event", key=key, kind=kind.value, mode="background")
        return self._fetcher.schedule_refresh(key)

    # ------------------------------------------------------------------
    # Table routing
    # ------------------------------------------------------------------

    def watch(
        self,
        table: str,
        key: str,
        *,
        match: Mapping[str, Any] | None = None,
        kinds: set[EventKind] | None = None,
    ) -> Callable[[], None]:
        """Route changes on *table* whose record matches *match* to *key*.

        Returns a disposer; disposing twice is a no-op.
        """
        entry = _Watch(
            table=table,
            key=key,
            match=dict(match or {}),
            kinds=frozenset(kinds) if kinds else None,
        )
        self._watches.append(entry)

        def dispose() -> None:
            try:
                self._watches.remove(entry)
            except ValueError:
                pass

        return dispose

    def keys_for(self, event: ServerEvent) -> list[str]:
        """Watched keys affected by *event*, each listed once, in watch order."""
        keys: list[str] = []
        for entry in self._watches:
            if entry.accepts(event) and entry.key not in keys:
                keys.append(entry.key)
        return keys

    def handle(self, event: ServerEvent) -> list[asyncio.Task[Any]]:
        """Schedule one background refresh per affected key."""
        tasks = []
        for key in self.keys_for(event):
            task = self.notify(key, event.kind)
            if task is not None:
                tasks.append(task)
        return tasks

    async def dispatch(self, event: ServerEvent) -> dict[str, Any]:
        """Refresh every affected key and wait; maps key to value or exception."""
        keys = self.keys_for(event)
        results = await asyncio.gather(
            *(self.on_server_event(k, event.kind) for k in keys),
            return_exceptions=True,
        )
        return dict(zip(keys, results))
