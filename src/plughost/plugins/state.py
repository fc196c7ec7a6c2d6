"""Persisted per-plugin enabled flags and permission grants.

Enabled flags live under ``plugin.state``, granted permissions under
``plugin.permissions``; both are maps keyed by plugin id.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional

from plughost.store import PERMISSIONS_KEY, STATE_KEY, KeyValueStore


class PluginStateStore:
    """Read and write the ``{plugin_id: enabled}`` and ``{plugin_id: [permission]}`` maps.

    Every write is a read-modify-write of the whole map, serialised by a lock
    so concurrent enable/disable calls for different plugins do not lose
    each other's updates.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._lock = asyncio.Lock()

    async def load(self) -> dict[str, bool]:
        data = await self._store.get(STATE_KEY)
        if not isinstance(data, dict):
            return {}
        return {str(k): bool(v) for k, v in data.items()}

    async def get_enabled(self, plugin_id: str) -> Optional[bool]:
        """Return the persisted flag, or ``None`` if the plugin was never toggled."""
        return (await self.load()).get(plugin_id)

    async def set_enabled(self, plugin_id: str, enabled: bool) -> None:
        async with self._lock:
            state = await self.load()
            state[plugin_id] = enabled
            await self._store.set(STATE_KEY, state)

    async def forget(self, plugin_id: str) -> None:
        async with self._lock:
            state = await self.load()
            if state.pop(plugin_id, None) is not None:
                await self._store.set(STATE_KEY, state)

    # --- permission grants ---

    async def _load_grants(self) -> dict[str, list[str]]:
        data = await self._store.get(PERMISSIONS_KEY)
        if not isinstance(data, dict):
            return {}
        return {str(k): [str(p) for p in v] for k, v in data.items() if isinstance(v, list)}

    async def get_granted(self, plugin_id: str) -> set[str]:
        return set((await self._load_grants()).get(plugin_id, []))

    async def grant(self, plugin_id: str, permissions: Iterable[str]) -> None:
        """Add *permissions* to what *plugin_id* has been granted."""
        async with self._lock:
            grants = await self._load_grants()
            current = grants.get(plugin_id, [])
            grants[plugin_id] = current + [p for p in permissions if p not in current]
            await self._store.set(PERMISSIONS_KEY, grants)
