"""Storage service contract."""

from abc import ABC, abstractmethod
from typing import List


class IStorageService(ABC):
    """Async blob storage addressed by name."""

    @abstractmethod
    async def upload(self, name: str, data: bytes) -> str:
        """Store ``data`` under ``name``. Returns the stored location."""

    @abstractmethod
    async def download(self, name: str) -> bytes:
        """Return the bytes stored under ``name``."""

    @abstractmethod
    async def list(self, name: str) -> List[str]:
        """Return the locations stored directly under directory ``name``."""

    @abstractmethod
    async def remove(self, name: str) -> None:
        """Delete what is stored under ``name``."""
