"""Local filesystem storage.

Names are paths; when a root is configured they resolve relative to it.
Filesystem failures propagate as ``OSError``.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import aiofiles
import aiofiles.os

from .base import IStorageService

logger = logging.getLogger(__name__)


class LocalStorageService(IStorageService):
    """Stores files on the local disk using aiofiles."""

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root) if root is not None else None

    def _resolve(self, name: str) -> Path:
        path = Path(name)
        return self.root / path if self.root is not None else path

    async def upload(self, name: str, data: bytes) -> str:
        path = self._resolve(name)
        await aiofiles.os.makedirs(path.parent, exist_ok=True)

        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
            await f.flush()

        logger.debug(f"Stored {len(data)} bytes at {path}")
        return str(path)

    async def download(self, name: str) -> bytes:
        async with aiofiles.open(self._resolve(name), "rb") as f:
            return await f.read()

    async def list(self, name: str) -> List[str]:
        path = self._resolve(name)
        entries = await aiofiles.os.listdir(path)
        return sorted(str(path / entry) for entry in entries)

    async def remove(self, name: str) -> None:
        await aiofiles.os.remove(self._resolve(name))
        logger.debug(f"Removed {name}")
