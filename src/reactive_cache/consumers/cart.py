"""CartConsumer – the signed-in user's shopping cart."""
from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Any, Mapping

from reactive_cache.cache.keys import CacheKeys
from reactive_cache.consumers.base import Consumer, Listener
from reactive_cache.consumers.models import CartItem
from reactive_cache.consumers.ports import CartBackend
from reactive_cache.kernel.errors import NotFoundError, UnauthenticatedError, ValidationError
from reactive_cache.runtime import CacheRuntime

__all__ = ["CartConsumer"]


class CartConsumer(Consumer):
    """Cart items cached under ``shop:cart:<user>``.

    Quantity edits and removals are optimistic and reconcile with a forced
    refresh on success, since totals are money-sensitive. Adding a product
    that is not in the cart yet shows a placeholder line until the backend
    returns the real row.
    """

    def __init__(
        self,
        runtime: CacheRuntime,
        backend: CartBackend,
        user_id: str | None,
        on_change: Listener | None = None,
    ) -> None:
        if not user_id:
            raise UnauthenticatedError(type(self).__name__, "use the cart")
        super().__init__(runtime, on_change)
        self._backend = backend
        self.user_id = user_id

    @property
    def key(self) -> str:
        return CacheKeys.cart(self.user_id)

    async def fetch(self) -> tuple[CartItem, ...]:
        return tuple(await self._backend.list_cart_items(self.user_id))

    def realtime_watches(self) -> list[tuple[str, Mapping[str, Any]]]:
        return [("cart_items", {"user_id": self.user_id})]

    @property
    def items(self) -> tuple[CartItem, ...]:
        return self.value or ()

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total_amount(self) -> float:
        return sum(item.subtotal for item in self.items)

    def find(self, item_id: str) -> CartItem | None:
        return next((i for i in self._snapshot() or () if i.id == item_id), None)

    async def add_item(self, product_id: str, quantity: int = 1) -> None:
        _check_quantity(quantity)
        existing = next((i for i in self._snapshot() or () if i.product_id == product_id), None)
        if existing is not None:
            new_quantity = existing.quantity + quantity
            await self._mutate(
                lambda items: _with_quantity(items, existing.id, new_quantity),
                lambda: self._backend.update_cart_item(self.user_id, existing.id, new_quantity),
            )
            return

        placeholder = CartItem(id=f"pending-{uuid.uuid4().hex}", product_id=product_id, quantity=quantity)

        async def insert() -> CartItem:
            created = await self._backend.insert_cart_item(self.user_id, product_id, quantity)
            self._runtime.update(
                self.key,
                lambda items: tuple(created if i.id == placeholder.id else i for i in items or ()),
            )
            return created

        await self._mutate(lambda items: (*(items or ()), placeholder), insert)

    async def remove_item(self, item_id: str) -> None:
        if self.find(item_id) is None:
            raise NotFoundError("Cart item", item_id, key=self.key)
        await self._mutate(
            lambda items: tuple(i for i in items or () if i.id != item_id),
            lambda: self._backend.delete_cart_item(self.user_id, item_id),
        )

    async def update_quantity(self, item_id: str, quantity: int) -> None:
        _check_quantity(quantity)
        if self.find(item_id) is None:
            raise NotFoundError("Cart item", item_id, key=self.key)
        await self._mutate(
            lambda items: _with_quantity(items, item_id, quantity),
            lambda: self._backend.update_cart_item(self.user_id, item_id, quantity),
        )

    async def clear(self) -> None:
        await self._mutate(
            lambda _: (),
            lambda: self._backend.clear_cart(self.user_id),
            reconcile=False,
        )


def _check_quantity(quantity: int) -> None:
    if quantity < 1:
        raise ValidationError("quantity", quantity, "must be at least 1")


def _with_quantity(items: tuple[CartItem, ...] | None, item_id: str, quantity: int) -> tuple[CartItem, ...]:
    return tuple(replace(i, quantity=quantity) if i.id == item_id else i for i in items or ())
