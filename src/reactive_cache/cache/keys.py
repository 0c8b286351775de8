"""Cache keys – module catalogue and key builders.

The store treats keys as opaque strings. The ``<module>:`` prefix is a
convention the builders follow so whole feature areas can be invalidated
together.
"""
from __future__ import annotations

from enum import Enum

__all__ = ["CacheKeys", "CacheModule", "module_for_key"]


class CacheModule(str, Enum):
    SHOP = "shop"
    CLASS = "class"
    SOCIAL = "social"
    WORK = "work"
    AI = "ai"
    USER = "user"
    GLOBAL = "global"


class CacheKeys:
    """Factory for the platform's cache key strings."""

    PRODUCTS = "shop:products"
    STORES = "shop:stores"
    COURSES = "class:courses"
    POSTS = "social:posts"
    PROJECTS = "work:projects"
    TASKS = "work:tasks"

    @staticmethod
    def products_by_user(user_id: str) -> str:
        return f"shop:products:user:{user_id}"

    @staticmethod
    def product(product_id: str) -> str:
        return f"shop:product:{product_id}"

    @staticmethod
    def cart(user_id: str) -> str:
        return f"shop:cart:{user_id}"

    @staticmethod
    def bag(user_id: str) -> str:
        return f"shop:bag:{user_id}"

    @staticmethod
    def store_by_user(user_id: str) -> str:
        return f"shop:store:user:{user_id}"

    @staticmethod
    def courses_by_user(user_id: str) -> str:
        return f"class:courses:user:{user_id}"

    @staticmethod
    def posts_by_user(user_id: str) -> str:
        return f"social:posts:user:{user_id}"

    @staticmethod
    def projects_by_user(user_id: str) -> str:
        return f"work:projects:user:{user_id}"

    @staticmethod
    def tasks_by_user(user_id: str) -> str:
        return f"work:tasks:user:{user_id}"

    @staticmethod
    def favorites(user_id: str) -> str:
        return f"user:favorites:{user_id}"

    @staticmethod
    def user_stats(user_id: str) -> str:
        return f"user:stats:{user_id}"

    @staticmethod
    def ai_conversations(user_id: str) -> str:
        return f"ai:conversations:{user_id}"

    @staticmethod
    def ai_messages(conversation_id: str) -> str:
        return f"ai:messages:{conversation_id}"

    @staticmethod
    def ai_suggestions(user_id: str) -> str:
        return f"ai:suggestions:{user_id}"


def module_for_key(key: str) -> CacheModule | None:
    """Return the module named by *key*'s prefix, or ``None`` if unscoped."""
    prefix = key.split(":", 1)[0]
    try:
        return CacheModule(prefix)
    except ValueError:
        return None
