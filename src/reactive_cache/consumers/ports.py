"""Backend ports – the remote reads and writes consumers depend on.

The concrete backend (schema, query language, transport) lives outside
this package; anything structurally matching these protocols will do.
"""
from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from reactive_cache.consumers.models import (
    BagItem,
    CartItem,
    Conversation,
    Feedback,
    ItemType,
    Message,
    Product,
    Store,
)

__all__ = ["BagBackend", "CartBackend", "CatalogBackend", "ConversationBackend"]


@runtime_checkable
class CartBackend(Protocol):
    async def list_cart_items(self, user_id: str) -> Sequence[CartItem]: ...
    async def insert_cart_item(self, user_id: str, product_id: str, quantity: int) -> CartItem: ...
    async def update_cart_item(self, user_id: str, item_id: str, quantity: int) -> None: ...
    async def delete_cart_item(self, user_id: str, item_id: str) -> None: ...
    async def clear_cart(self, user_id: str) -> None: ...


@runtime_checkable
class BagBackend(Protocol):
    async def list_bag_items(self, user_id: str) -> Sequence[BagItem]: ...
    async def insert_bag_item(
        self, user_id: str, item_type: ItemType, item_id: str, quantity: int
    ) -> BagItem: ...
    async def update_bag_item(self, user_id: str, bag_item_id: str, quantity: int) -> None: ...
    async def delete_bag_item(self, user_id: str, bag_item_id: str) -> None: ...
    async def clear_bag(self, user_id: str) -> None: ...
    async def create_order(self, user_id: str, items: Sequence[BagItem], total_amount: float) -> str: ...


@runtime_checkable
class ConversationBackend(Protocol):
    async def list_conversations(self, user_id: str) -> Sequence[Conversation]: ...
    async def insert_conversation(self, user_id: str, title: str) -> Conversation: ...
    async def delete_conversation(self, conversation_id: str) -> None: ...
    async def list_messages(self, conversation_id: str) -> Sequence[Message]: ...
    async def update_message_feedback(self, message_id: str, feedback: Feedback | None) -> None: ...


@runtime_checkable
class CatalogBackend(Protocol):
    async def list_products(self) -> Sequence[Product]: ...
    async def get_product(self, product_id: str) -> Product | None: ...
    async def list_products_by_user(self, user_id: str) -> Sequence[Product]: ...
    async def insert_product(self, user_id: str, fields: Mapping[str, Any]) -> Product: ...
    async def update_product(self, product_id: str, changes: Mapping[str, Any]) -> Product: ...
    async def delete_product(self, product_id: str) -> None: ...
    async def list_stores(self) -> Sequence[Store]: ...
