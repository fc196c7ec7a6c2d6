"""Key-value persistence for plugin state and plugin configuration.

The plugin runtime only defines *what* is persisted; these backends decide
*how*. All of them satisfy :class:`KeyValueStore`:

* :class:`MemoryStore` -- process-local, used in tests and embedded hosts.
* :class:`JsonFileStore` -- one JSON document written atomically.
* :class:`DiskStore` -- backed by :mod:`diskcache`.

:func:`open_store` picks one according to
:attr:`~plughost.models.HostConfig.state_backend`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from plughost.models import HostConfig
from plughost.store.base import (
    PERMISSIONS_KEY,
    STATE_KEY,
    KeyValueStore,
    MemoryStore,
    config_key,
)
from plughost.store.disk_store import DiskStore
from plughost.store.json_store import JsonFileStore

__all__ = [
    "PERMISSIONS_KEY",
    "STATE_KEY",
    "DiskStore",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "config_key",
    "open_store",
]


def open_store(config: HostConfig, directory: Optional[Path] = None) -> KeyValueStore:
    """Create the store selected by ``config.state_backend``.

    Args:
        config: Effective host configuration.
        directory: Base directory for file-backed stores. Defaults to the
            XDG data directory (``json``) or cache directory (``disk``).
    """
    if config.state_backend == "memory":
        return MemoryStore()
    from plughost.config import get_cache_dir, get_data_dir

    if config.state_backend == "disk":
        return DiskStore((directory or get_cache_dir()) / "store")
    return JsonFileStore((directory or get_data_dir()) / "state.json")
