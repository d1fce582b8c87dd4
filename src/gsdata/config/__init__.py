"""Configuration package."""

from .settings import AppSettings, get_settings
from .schema import SyncConfig
from .loader import ConfigLoader, ConfigurationError

__all__ = [
    "AppSettings",
    "get_settings",
    "SyncConfig",
    "ConfigLoader",
    "ConfigurationError",
]
