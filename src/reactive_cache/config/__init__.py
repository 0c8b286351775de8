"""Config – 12-factor env-based settings."""
from reactive_cache.config.errors import ConfigError, InvalidSettingValueError, MissingRequiredSettingError
from reactive_cache.config.loaders import DotenvSettingsLoader, EnvSettingsLoader, SettingsLoader
from reactive_cache.config.settings import CacheSettings, Settings

__all__ = [
    "CacheSettings",
    "ConfigError",
    "DotenvSettingsLoader",
    "EnvSettingsLoader",
    "InvalidSettingValueError",
    "MissingRequiredSettingError",
    "Settings",
    "SettingsLoader",
]
