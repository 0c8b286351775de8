"""Config – Settings base class and CacheSettings."""
from __future__ import annotations

import dataclasses
from typing import ClassVar

from reactive_cache.cache.keys import CacheModule
from reactive_cache.config.errors import InvalidSettingValueError


@dataclasses.dataclass
class Settings:
    """Base class for 12-factor settings."""

    _prefix: ClassVar[str] = ""

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """Override to add cross-field validation."""


@dataclasses.dataclass
class CacheSettings(Settings):
    """Runtime knobs, read from ``REACTIVE_CACHE_*`` environment variables.

    TTLs only matter when ``revalidate_stale`` is on: stale entries are still
    served instantly and refreshed once in the background. With it off,
    entries never go stale and refreshes are purely caller-driven.
    """

    _prefix = "REACTIVE_CACHE"

    log_level: str = "INFO"
    log_json: bool = True
    revalidate_stale: bool = False
    default_ttl_seconds: float = 300.0
    shop_ttl_seconds: float = 300.0
    class_ttl_seconds: float = 600.0
    social_ttl_seconds: float = 120.0
    work_ttl_seconds: float = 300.0
    ai_ttl_seconds: float = 900.0
    user_ttl_seconds: float = 300.0
    global_ttl_seconds: float = 300.0

    def _validate(self) -> None:
        for field in dataclasses.fields(self):
            if not field.name.endswith("_ttl_seconds"):
                continue
            value = getattr(self, field.name)
            if value < 0:
                raise InvalidSettingValueError(field.name, value, "must be >= 0")

    def ttl_for(self, module: CacheModule | None) -> float:
        """TTL for keys of *module*; ``default_ttl_seconds`` for unscoped keys."""
        if module is None:
            return self.default_ttl_seconds
        return getattr(self, f"{module.value}_ttl_seconds")


__all__ = ["CacheSettings", "Settings"]
