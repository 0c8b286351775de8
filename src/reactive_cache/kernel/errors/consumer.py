"""Consumer errors – edits refused before anything reaches the cache."""

from __future__ import annotations

from typing import Any

from reactive_cache.kernel.errors.base import ReactiveCacheError


class ConsumerError(ReactiveCacheError):
    """A feature consumer rejected a call; the cache is untouched.

    ``key`` is the cache key the consumer owns, when the call got that far.
    """

    default_code = "consumer_error"

    def __init__(
        self,
        message: str,
        *,
        consumer: str | None = None,
        key: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, detail={"consumer": consumer, "key": key, **(detail or {})})
        self.consumer = consumer
        self.key = key


class UnauthenticatedError(ConsumerError):
    """A user-scoped consumer was built without a signed-in user."""

    default_code = "unauthenticated"

    def __init__(self, consumer: str, action: str) -> None:
        super().__init__(f"Sign in to {action}", consumer=consumer)
        self.action = action


class NotFoundError(ConsumerError):
    """The row an edit targets is not in the cached snapshot, or the backend has no such record."""

    default_code = "not_found"

    def __init__(self, resource: str, identifier: str, *, key: str | None = None) -> None:
        super().__init__(
            f"{resource} '{identifier}' not found",
            key=key,
            detail={"resource": resource, "id": identifier},
        )
        self.resource = resource
        self.identifier = identifier


class ValidationError(ConsumerError):
    """Input rejected locally; ``field`` names it and ``value`` is what was given."""

    default_code = "validation_error"

    def __init__(self, field: str, value: Any, reason: str) -> None:
        super().__init__(f"{field} {reason}", detail={"field": field, "value": value})
        self.field = field
        self.value = value
        self.reason = reason


class DuplicateItemError(ConsumerError):
    """A course or service is already in the bag; those lines never stack."""

    default_code = "duplicate_item"

    def __init__(self, item_type: str, item_id: str, *, key: str | None = None) -> None:
        super().__init__(
            f"{item_type} '{item_id}' is already in the bag",
            key=key,
            detail={"item_type": item_type, "item_id": item_id},
        )
        self.item_type = item_type
        self.item_id = item_id


__all__ = [
    "ConsumerError",
    "DuplicateItemError",
    "NotFoundError",
    "UnauthenticatedError",
    "ValidationError",
]
