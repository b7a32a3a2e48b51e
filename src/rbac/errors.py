"""Errors raised by the role hierarchy engine.

Store and cache errors are defined next to their backends and re-exported
here so callers can catch everything from one place.
"""

from typing import Any

from cache.base import CacheError
from database.errors import StoreError


class RoleServiceError(Exception):
    """Base class for role service failures."""
    pass


class CacheRepopulationError(RoleServiceError):
    """
    A role mutation committed but the cache could not be refreshed.

    The write must not be retried; call ``RoleService.update_cache()``
    again instead. ``result`` holds what the mutation would have returned.
    """

    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result


__all__ = [
    "CacheError",
    "CacheRepopulationError",
    "RoleServiceError",
    "StoreError",
]
