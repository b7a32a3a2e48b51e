"""Cache store contract.

Both backends serialize values to JSON text before storing them, so a value
read back through ``get_json`` has the same shape regardless of backend.
Unlike a fire-and-forget cache client, every failure is raised as
``CacheError``: callers decide whether a broken cache is a miss or a fault.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class CacheError(Exception):
    """Raised when the cache store cannot be read, written or decoded."""
    pass


class ICacheService(ABC):
    """Async key-value cache over serialized payloads."""

    async def connect(self) -> None:
        """Open backend connections. No-op by default."""

    async def close(self) -> None:
        """Release backend connections. No-op by default."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the backend is reachable."""

    @abstractmethod
    async def get_string(self, key: str) -> Optional[str]:
        """Return the raw string under ``key`` or None if absent."""

    @abstractmethod
    async def set_string(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store a raw string under ``key``."""

    @abstractmethod
    async def get_json(self, key: str) -> Optional[Any]:
        """Return the decoded JSON value under ``key`` or None if absent.

        Raises:
            CacheError: On transport failure or undecodable payload.
        """

    @abstractmethod
    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Serialize ``value`` as JSON and store it under ``key``.

        Raises:
            CacheError: On transport or serialization failure.
        """

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Delete ``key``. Returns True if something was removed."""


class CacheStatus(str, Enum):
    """Outcome of a cache lookup."""
    HIT = "hit"
    MISS = "miss"      # nothing stored
    EMPTY = "empty"    # stored, but an empty collection
    ERROR = "error"    # transport or decode failure


@dataclass(frozen=True)
class CacheLookup(Generic[T]):
    """Tagged result of reading a cached snapshot."""
    status: CacheStatus
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def is_miss(self) -> bool:
        return self.status is not CacheStatus.HIT

    @classmethod
    def hit(cls, value: T) -> "CacheLookup[T]":
        return cls(CacheStatus.HIT, value=value)

    @classmethod
    def miss(cls) -> "CacheLookup[T]":
        return cls(CacheStatus.MISS)

    @classmethod
    def empty(cls) -> "CacheLookup[T]":
        return cls(CacheStatus.EMPTY)

    @classmethod
    def failed(cls, error: Exception) -> "CacheLookup[T]":
        return cls(CacheStatus.ERROR, error=error)
