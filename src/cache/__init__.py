"""Cache layer for the admin backend.

Provides the cache store used to mirror role data, with a Redis backend
for shared deployments and an in-process backend for single workers.
"""

from typing import Optional

from config.settings import Settings, get_settings

from .base import CacheError, CacheLookup, CacheStatus, ICacheService
from .memory_cache import MemoryCacheService
from .redis_client import RedisCacheService


def get_cache_service(settings: Optional[Settings] = None) -> ICacheService:
    """Build the cache backend selected by ``APP_CACHE_BACKEND``."""
    settings = settings or get_settings()
    if settings.cache_backend == "memory":
        return MemoryCacheService(default_ttl=settings.redis.default_ttl)
    return RedisCacheService(settings.redis)


__all__ = [
    "CacheError",
    "CacheLookup",
    "CacheStatus",
    "ICacheService",
    "MemoryCacheService",
    "RedisCacheService",
    "get_cache_service",
]
