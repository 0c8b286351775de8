"""Consumers – feature-level state containers built on the cache runtime."""
from reactive_cache.consumers.bag import UnifiedBagConsumer
from reactive_cache.consumers.base import Consumer
from reactive_cache.consumers.cart import CartConsumer
from reactive_cache.consumers.catalog import MyProductsConsumer, ProductCatalogConsumer, StoresConsumer
from reactive_cache.consumers.conversations import ConversationsConsumer
from reactive_cache.consumers.models import (
    BagItem,
    BagItemData,
    CartItem,
    Conversation,
    Feedback,
    ItemType,
    Message,
    Product,
    Store,
)
from reactive_cache.consumers.ports import BagBackend, CartBackend, CatalogBackend, ConversationBackend

__all__ = [
    "BagBackend",
    "BagItem",
    "BagItemData",
    "CartBackend",
    "CartConsumer",
    "CartItem",
    "CatalogBackend",
    "Consumer",
    "Conversation",
    "ConversationBackend",
    "ConversationsConsumer",
    "Feedback",
    "ItemType",
    "Message",
    "MyProductsConsumer",
    "Product",
    "ProductCatalogConsumer",
    "Store",
    "StoresConsumer",
    "UnifiedBagConsumer",
]
