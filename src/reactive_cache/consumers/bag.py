"""UnifiedBagConsumer – one bag for products, courses and services."""
from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Any, Mapping

from reactive_cache.cache.keys import CacheKeys
from reactive_cache.consumers.base import Consumer, Listener
from reactive_cache.consumers.models import BagItem, ItemType
from reactive_cache.consumers.ports import BagBackend
from reactive_cache.kernel.errors import (
    DuplicateItemError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from reactive_cache.observability.logging import get_logger
from reactive_cache.runtime import CacheRuntime

__all__ = ["UnifiedBagConsumer"]

logger = get_logger(__name__)


class UnifiedBagConsumer(Consumer):
    """Bag lines cached under ``shop:bag:<user>``.

    Products stack: adding one already in the bag raises its quantity.
    Courses and services are single-seat: quantity is always 1 and adding
    one twice is a :class:`DuplicateItemError`.
    """

    def __init__(
        self,
        runtime: CacheRuntime,
        backend: BagBackend,
        user_id: str | None,
        on_change: Listener | None = None,
    ) -> None:
        if not user_id:
            raise UnauthenticatedError(type(self).__name__, "use the bag")
        super().__init__(runtime, on_change)
        self._backend = backend
        self.user_id = user_id

    @property
    def key(self) -> str:
        return CacheKeys.bag(self.user_id)

    async def fetch(self) -> tuple[BagItem, ...]:
        return tuple(await self._backend.list_bag_items(self.user_id))

    def realtime_watches(self) -> list[tuple[str, Mapping[str, Any]]]:
        return [("unified_cart_items", {"user_id": self.user_id})]

    @property
    def items(self) -> tuple[BagItem, ...]:
        return self.value or ()

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total_amount(self) -> float:
        return sum(item.subtotal for item in self.items)

    def is_in_bag(self, item_type: ItemType, item_id: str) -> bool:
        return self._line_for(item_type, item_id) is not None

    async def add_item(self, item_type: ItemType, item_id: str, quantity: int = 1) -> None:
        _check_quantity(quantity)
        existing = self._line_for(item_type, item_id)
        if existing is not None:
            if item_type.single_seat:
                raise DuplicateItemError(item_type.value, item_id, key=self.key)
            new_quantity = existing.quantity + quantity
            await self._mutate(
                lambda items: _with_quantity(items, existing.id, new_quantity),
                lambda: self._backend.update_bag_item(self.user_id, existing.id, new_quantity),
            )
            return

        if item_type.single_seat:
            quantity = 1
        placeholder = BagItem(
            id=f"pending-{uuid.uuid4().hex}",
            item_type=item_type,
            item_id=item_id,
            quantity=quantity,
        )

        async def insert() -> BagItem:
            created = await self._backend.insert_bag_item(self.user_id, item_type, item_id, quantity)
            self._runtime.update(
                self.key,
                lambda items: tuple(created if i.id == placeholder.id else i for i in items or ()),
            )
            return created

        await self._mutate(lambda items: (*(items or ()), placeholder), insert)

    async def remove_item(self, bag_item_id: str) -> None:
        self._line(bag_item_id)
        await self._mutate(
            lambda items: tuple(i for i in items or () if i.id != bag_item_id),
            lambda: self._backend.delete_bag_item(self.user_id, bag_item_id),
        )

    async def update_quantity(self, bag_item_id: str, quantity: int) -> None:
        _check_quantity(quantity)
        line = self._line(bag_item_id)
        if line.item_type.single_seat and quantity != 1:
            raise ValidationError("quantity", quantity, f"is always 1 for {line.item_type.value} lines")
        await self._mutate(
            lambda items: _with_quantity(items, bag_item_id, quantity),
            lambda: self._backend.update_bag_item(self.user_id, bag_item_id, quantity),
        )

    async def clear(self) -> None:
        await self._mutate(
            lambda _: (),
            lambda: self._backend.clear_bag(self.user_id),
            reconcile=False,
        )

    async def checkout(self) -> str | None:
        """Place an order for the bag's contents and empty it.

        Returns the order id, or ``None`` when the bag is empty.
        """
        lines: tuple[BagItem, ...] = self._snapshot() or ()
        if not lines:
            return None
        total = sum(line.subtotal for line in lines)
        order_id = await self._backend.create_order(self.user_id, lines, total)
        logger.info("bag.checkout.completed", user_id=self.user_id, order_id=order_id, lines=len(lines))
        await self.clear()
        return order_id

    def _line_for(self, item_type: ItemType, item_id: str) -> BagItem | None:
        return next(
            (i for i in self._snapshot() or () if i.item_type is item_type and i.item_id == item_id),
            None,
        )

    def _line(self, bag_item_id: str) -> BagItem:
        line = next((i for i in self._snapshot() or () if i.id == bag_item_id), None)
        if line is None:
            raise NotFoundError("Bag item", bag_item_id, key=self.key)
        return line


def _check_quantity(quantity: int) -> None:
    if quantity < 1:
        raise ValidationError("quantity", quantity, "must be at least 1")


def _with_quantity(items: tuple[BagItem, ...] | None, bag_item_id: str, quantity: int) -> tuple[BagItem, ...]:
    return tuple(replace(i, quantity=quantity) if i.id == bag_item_id else i for i in items or ())
