"""Settings errors – raised while building a :class:`Settings` instance."""
from __future__ import annotations

from typing import Any

from reactive_cache.kernel.errors import ReactiveCacheError


class ConfigError(ReactiveCacheError):
    """Settings could not be built.

    ``setting`` is the dataclass field or environment variable at fault,
    when one can be named.
    """

    default_code = "config_error"

    def __init__(self, message: str, *, setting: str | None = None, cause: BaseException | None = None) -> None:
        super().__init__(message, detail={"setting": setting}, cause=cause)
        self.setting = setting


class MissingRequiredSettingError(ConfigError):
    """A field without a default has no environment variable."""

    default_code = "setting_missing"

    def __init__(self, env_key: str) -> None:
        super().__init__(f"{env_key} must be set", setting=env_key)


class InvalidSettingValueError(ConfigError):
    """A value was present but could not be coerced or failed validation."""

    default_code = "setting_invalid"

    def __init__(self, setting: str, value: Any, reason: str, *, cause: BaseException | None = None) -> None:
        super().__init__(f"{setting}={value!r}: {reason}", setting=setting, cause=cause)
        self.value = value
        self.reason = reason


__all__ = ["ConfigError", "InvalidSettingValueError", "MissingRequiredSettingError"]
