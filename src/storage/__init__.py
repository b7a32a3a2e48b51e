"""File storage adapters."""

from typing import Optional

from config.settings import Settings, get_settings

from .base import IStorageService
from .local_storage import LocalStorageService


def get_storage_service(settings: Optional[Settings] = None) -> IStorageService:
    """Local storage rooted at ``STORAGE_ROOT``."""
    settings = settings or get_settings()
    return LocalStorageService(settings.storage.root)


__all__ = [
    "IStorageService",
    "LocalStorageService",
    "get_storage_service",
]
