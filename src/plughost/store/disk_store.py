"""Store backed by :mod:`diskcache`."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import diskcache


class DiskStore:
    """Persist keys in a :class:`diskcache.Cache` directory.

    Values are pickled by diskcache, so every ``get`` returns a fresh object.
    Entries never expire.

    Args:
        directory: Cache directory; created if missing.

    Example::

        store = DiskStore("/tmp/plughost-store")
        await store.set("plugin.state", {"timestamp": True})
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._cache = diskcache.Cache(str(self._directory))

    async def get(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._cache.get, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._cache.set, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._cache.delete, key)

    def stats(self) -> dict[str, Any]:
        return {"size": len(self._cache), "directory": str(self._directory)}

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()
