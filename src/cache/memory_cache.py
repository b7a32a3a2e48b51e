"""In-process cache backend.

Used for single-worker deployments and tests. Values are kept as JSON text
so decoding behaves the same as with Redis.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

from .base import CacheError, ICacheService

logger = logging.getLogger(__name__)


class MemoryCacheService(ICacheService):
    """Dict-backed cache with optional per-key TTL."""

    def __init__(self, default_ttl: Optional[int] = None):
        self._default_ttl = default_ttl
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = asyncio.Lock()

    async def ping(self) -> bool:
        return True

    async def get_string(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and time.monotonic() >= expires_at:
                del self._data[key]
                return None
            return value

    async def set_string(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if ttl is None:
            ttl = self._default_ttl
        expires_at = time.monotonic() + ttl if ttl else None
        async with self._lock:
            self._data[key] = (value, expires_at)

    async def get_json(self, key: str) -> Optional[Any]:
        data = await self.get_string(key)
        if data is None:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            raise CacheError(f"Undecodable payload under {key}: {e}") from e

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            serialized = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Cannot serialize value for {key}: {e}") from e
        await self.set_string(key, serialized, ttl=ttl)

    async def remove(self, key: str) -> bool:
        async with self._lock:
            return self._data.pop(key, None) is not None
