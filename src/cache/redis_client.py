"""Redis cache backend.

Implements ``ICacheService`` over a pooled ``redis.asyncio`` client. Every
key is namespaced with ``RedisSettings.key_prefix`` so several deployments
can share one Redis database. Values are stored as JSON text.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from config.settings import RedisSettings, get_settings

from .base import CacheError, ICacheService

logger = logging.getLogger(__name__)

# Failures that mean "Redis is unreachable or misbehaving"
_TRANSPORT_ERRORS = (RedisError, OSError)


class RedisCacheService(ICacheService):
    """Cache store backed by Redis.

    Usage:
        cache = RedisCacheService()
        await cache.connect()
        await cache.set_json("sys_role:all", [{"id": "1"}])
        roles = await cache.get_json("sys_role:all")
        await cache.close()
    """

    def __init__(self, settings: Optional[RedisSettings] = None):
        self.settings = settings or get_settings().redis
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._connected

    async def connect(self) -> None:
        """Open the pool and verify the server answers PING. Safe to call twice."""
        if self._connected:
            return

        endpoint = f"{self.settings.host}:{self.settings.port}/{self.settings.db}"
        pool = ConnectionPool.from_url(
            self.settings.url,
            decode_responses=True,
            max_connections=self.settings.max_connections,
            socket_connect_timeout=self.settings.socket_connect_timeout,
            socket_timeout=self.settings.socket_timeout,
        )
        client = Redis(connection_pool=pool)
        try:
            await client.ping()
        except _TRANSPORT_ERRORS as e:
            logger.error(f"Redis at {endpoint} unreachable: {e}")
            await pool.disconnect()
            raise CacheError(f"Failed to connect to Redis at {endpoint}: {e}") from e

        self._pool, self._client, self._connected = pool, client, True
        logger.info(f"Redis cache connected ({endpoint}, prefix={self.settings.key_prefix!r})")

    async def close(self) -> None:
        client, pool = self._client, self._pool
        self._client, self._pool, self._connected = None, None, False

        if client is not None:
            await client.aclose()
        if pool is not None:
            await pool.disconnect()
        logger.info("Redis cache disconnected")

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except _TRANSPORT_ERRORS:
            return False

    def _full_key(self, key: str) -> str:
        return f"{self.settings.key_prefix}{key}"

    async def _ensure_client(self) -> Redis:
        # A Redis that was down at boot is picked up again on the next command
        if self._client is None:
            await self.connect()
        return self._client

    async def get_string(self, key: str) -> Optional[str]:
        client = await self._ensure_client()
        try:
            return await client.get(self._full_key(key))
        except _TRANSPORT_ERRORS as e:
            raise CacheError(f"Redis GET error for {key}: {e}") from e

    async def set_string(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        client = await self._ensure_client()
        expire = self.settings.default_ttl if ttl is None else ttl
        try:
            await client.set(self._full_key(key), value, ex=expire)
        except _TRANSPORT_ERRORS as e:
            raise CacheError(f"Redis SET error for {key}: {e}") from e

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.get_string(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CacheError(f"Undecodable payload under {key}: {e}") from e

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            payload = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Cannot serialize value for {key}: {e}") from e
        await self.set_string(key, payload, ttl=ttl)

    async def remove(self, key: str) -> bool:
        client = await self._ensure_client()
        try:
            deleted = await client.delete(self._full_key(key))
        except _TRANSPORT_ERRORS as e:
            raise CacheError(f"Redis DELETE error for {key}: {e}") from e
        return deleted > 0
