"""Catalog consumers – product listings and stores."""
from __future__ import annotations

import dataclasses
from typing import Any, Mapping

from reactive_cache.cache.keys import CacheKeys
from reactive_cache.consumers.base import Consumer, Listener
from reactive_cache.consumers.models import Product, Store
from reactive_cache.consumers.ports import CatalogBackend
from reactive_cache.kernel.errors import NotFoundError, UnauthenticatedError, ValidationError
from reactive_cache.runtime import CacheRuntime

__all__ = ["MyProductsConsumer", "ProductCatalogConsumer", "StoresConsumer"]

_PRODUCT_FIELDS = frozenset(f.name for f in dataclasses.fields(Product))
_READ_ONLY_FIELDS = frozenset({"id", "created_by"})


class ProductCatalogConsumer(Consumer):
    """Active products under ``shop:products``, filtered client-side."""

    def __init__(
        self,
        runtime: CacheRuntime,
        backend: CatalogBackend,
        *,
        category: str | None = None,
        status: str | None = None,
        store_id: str | None = None,
        on_change: Listener | None = None,
    ) -> None:
        super().__init__(runtime, on_change)
        self._backend = backend
        self.category = category
        self.status = status
        self.store_id = store_id

    @property
    def key(self) -> str:
        return CacheKeys.PRODUCTS

    async def fetch(self) -> tuple[Product, ...]:
        return tuple(await self._backend.list_products())

    def realtime_watches(self) -> list[tuple[str, Mapping[str, Any]]]:
        return [("products", {})]

    @property
    def products(self) -> tuple[Product, ...]:
        return tuple(p for p in self.value or () if self._accepts(p))

    async def find(self, product_id: str) -> Product:
        """Product by id: from the cached listing if present, else a remote read."""
        cached = next((p for p in self._snapshot() or () if p.id == product_id), None)
        if cached is not None:
            return cached

        async def load() -> Product:
            product = await self._backend.get_product(product_id)
            if product is None:
                raise NotFoundError("Product", product_id, key=CacheKeys.product(product_id))
            return product

        return await self._runtime.get_or_fetch(CacheKeys.product(product_id), load)

    def _accepts(self, product: Product) -> bool:
        if self.status and product.status != self.status:
            return False
        if self.category and product.category != self.category:
            return False
        if self.store_id and product.store_id != self.store_id:
            return False
        return True


class MyProductsConsumer(Consumer):
    """A seller's own products under ``shop:products:user:<user>``.

    Every change is mirrored into the global ``shop:products`` listing when
    that listing is cached, so other views stay in step without a refetch.
    """

    def __init__(
        self,
        runtime: CacheRuntime,
        backend: CatalogBackend,
        user_id: str | None,
        on_change: Listener | None = None,
    ) -> None:
        if not user_id:
            raise UnauthenticatedError(type(self).__name__, "manage products")
        super().__init__(runtime, on_change)
        self._backend = backend
        self.user_id = user_id

    @property
    def key(self) -> str:
        return CacheKeys.products_by_user(self.user_id)

    async def fetch(self) -> tuple[Product, ...]:
        return tuple(await self._backend.list_products_by_user(self.user_id))

    def realtime_watches(self) -> list[tuple[str, Mapping[str, Any]]]:
        return [("products", {"created_by": self.user_id})]

    @property
    def products(self) -> tuple[Product, ...]:
        return self.value or ()

    async def create_product(self, fields: Mapping[str, Any]) -> Product:
        _check_fields(fields)
        created = await self._backend.insert_product(self.user_id, fields)
        self._runtime.update(self.key, lambda items: (created, *(items or ())))
        self._mirror(lambda items: (created, *items))
        return created

    async def update_product(self, product_id: str, changes: Mapping[str, Any]) -> Product:
        _check_fields(changes)
        self._product(product_id)
        updated = await self._mutate(
            lambda items: tuple(
                dataclasses.replace(p, **changes) if p.id == product_id else p for p in items or ()
            ),
            lambda: self._backend.update_product(product_id, changes),
            reconcile=False,
        )
        self._runtime.update(self.key, lambda items: _swap(items, updated))
        self._mirror(lambda items: _swap(items, updated))
        return updated

    async def delete_product(self, product_id: str) -> None:
        self._product(product_id)
        await self._mutate(
            lambda items: tuple(p for p in items or () if p.id != product_id),
            lambda: self._backend.delete_product(product_id),
            reconcile=False,
        )
        self._mirror(lambda items: tuple(p for p in items if p.id != product_id))
        self._runtime.store.invalidate(CacheKeys.product(product_id))

    def _mirror(self, fn: Any) -> None:
        if self._runtime.has(CacheKeys.PRODUCTS):
            self._runtime.update(CacheKeys.PRODUCTS, lambda items: fn(items or ()))

    def _product(self, product_id: str) -> Product:
        product = next((p for p in self._snapshot() or () if p.id == product_id), None)
        if product is None:
            raise NotFoundError("Product", product_id, key=self.key)
        return product


class StoresConsumer(Consumer):
    """Active stores under ``shop:stores`` (read-only)."""

    def __init__(self, runtime: CacheRuntime, backend: CatalogBackend, on_change: Listener | None = None) -> None:
        super().__init__(runtime, on_change)
        self._backend = backend

    @property
    def key(self) -> str:
        return CacheKeys.STORES

    async def fetch(self) -> tuple[Store, ...]:
        return tuple(await self._backend.list_stores())

    @property
    def stores(self) -> tuple[Store, ...]:
        return self.value or ()


def _check_fields(fields: Mapping[str, Any]) -> None:
    unknown = sorted(set(fields) - (_PRODUCT_FIELDS - _READ_ONLY_FIELDS))
    if unknown:
        raise ValidationError("fields", unknown, "are unknown or read-only")


def _swap(items: tuple[Product, ...] | None, product: Product) -> tuple[Product, ...]:
    return tuple(product if p.id == product.id else p for p in items or ())
