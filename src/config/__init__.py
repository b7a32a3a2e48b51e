"""Configuration module for the admin backend."""

from .database import DatabaseSettings, get_database_settings
from .logging_config import configure_logging
from .settings import RedisSettings, Settings, StorageSettings, get_settings

__all__ = [
    "DatabaseSettings",
    "get_database_settings",
    "configure_logging",
    "RedisSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
