"""Store protocol, key layout, and the in-memory backend."""

from __future__ import annotations

import copy
from typing import Any, Optional, Protocol, runtime_checkable

STATE_KEY = "plugin.state"
"""Key holding ``{plugin_id: enabled}`` for every plugin with a persisted flag."""

PERMISSIONS_KEY = "plugin.permissions"
"""Key holding ``{plugin_id: [permission, ...]}`` for permissions the user granted."""

_CONFIG_PREFIX = "plugin.config."


def config_key(plugin_id: str) -> str:
    """Return the key under which *plugin_id*'s config value map is stored."""
    return f"{_CONFIG_PREFIX}{plugin_id}"


@runtime_checkable
class KeyValueStore(Protocol):
    """Asynchronous key-value store holding JSON-compatible values.

    ``get`` returns ``None`` for absent keys. Implementations must never
    hand out references to their internal state: mutating a returned value
    must not change what is stored.
    """

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store backed by a dict."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of everything stored (test helper)."""
        return copy.deepcopy(self._data)
