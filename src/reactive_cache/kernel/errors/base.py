"""Root of the reactive-cache error hierarchy."""

from __future__ import annotations

from typing import Any


class ReactiveCacheError(Exception):
    """Base class for every error the package raises.

    ``code`` is a stable slug, ``detail`` holds the identifiers needed to
    find the failing resource again (cache key, consumer, item id) and
    ``cause`` the exception that triggered it, if any.
    """

    default_code: str = "reactive_cache_error"

    def __init__(
        self,
        message: str,
        *,
        detail: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = self.default_code
        self.detail: dict[str, Any] = {k: v for k, v in (detail or {}).items() if v is not None}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code!r})"

    def log_fields(self) -> dict[str, Any]:
        """Flat key/values to splat into a structlog event."""
        fields: dict[str, Any] = {"error_code": self.code, **self.detail}
        if self.cause is not None:
            fields["error"] = repr(self.cause)
        return fields


__all__ = ["ReactiveCacheError"]
