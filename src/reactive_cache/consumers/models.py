"""Consumer models – immutable records held in cache snapshots.

Collections are cached as tuples of frozen dataclasses. Edits go through
``dataclasses.replace`` and produce new tuples; a snapshot is never
modified in place.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "BagItem",
    "BagItemData",
    "CartItem",
    "Conversation",
    "Feedback",
    "ItemType",
    "Message",
    "Product",
    "Store",
]


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float
    category: str
    image: str | None = None
    description: str | None = None
    created_by: str | None = None
    store_id: str | None = None
    stock: int | None = None
    status: str = "active"


@dataclass(frozen=True)
class Store:
    id: str
    owner_id: str
    name: str
    slug: str
    description: str | None = None
    status: str = "active"


@dataclass(frozen=True)
class CartItem:
    id: str
    product_id: str
    quantity: int
    product: Product | None = None

    @property
    def subtotal(self) -> float:
        return (self.product.price if self.product else 0.0) * self.quantity


class ItemType(str, Enum):
    PRODUCT = "product"
    COURSE = "course"
    SERVICE = "service"

    @property
    def single_seat(self) -> bool:
        """Courses and services are bought once; only products stack."""
        return self is not ItemType.PRODUCT


@dataclass(frozen=True)
class BagItemData:
    id: str
    name: str
    price: float
    image: str | None = None
    seller_id: str | None = None


@dataclass(frozen=True)
class BagItem:
    id: str
    item_type: ItemType
    item_id: str
    quantity: int
    item_data: BagItemData | None = None

    @property
    def subtotal(self) -> float:
        return (self.item_data.price if self.item_data else 0.0) * self.quantity


@dataclass(frozen=True)
class Conversation:
    id: str
    user_id: str
    title: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class Feedback(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class Message:
    id: str
    conversation_id: str
    role: str
    content: str
    feedback: Feedback | None = None
    created_at: str | None = None
