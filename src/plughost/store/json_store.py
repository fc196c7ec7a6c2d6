"""Single-file JSON store with atomic writes."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Optional

from plughost.config import atomic_write
from plughost.exceptions import ConfigError

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Keeps every key in one JSON object on disk.

    The document is read once on first access and rewritten in full with
    :func:`~plughost.config.atomic_write` on every mutation, so a crash
    mid-write leaves the previous document intact.

    Args:
        path: Location of the JSON document. Parent directories are created
            on first write.

    Raises:
        ConfigError: On first access, if the file exists but is not a JSON
            object.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: Optional[dict[str, Any]] = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._data is None:
            if self._path.is_file():
                try:
                    data = json.loads(self._path.read_text(encoding="utf-8"))
                except (json.JSONDecodeError, ValueError) as exc:
                    raise ConfigError(f"Invalid store file at {self._path}: {exc}") from exc
                if not isinstance(data, dict):
                    raise ConfigError(f"Invalid store file at {self._path}: expected a JSON object")
                self._data = data
            else:
                self._data = {}
        return self._data

    def _flush(self, data: dict[str, Any]) -> None:
        atomic_write(self._path, json.dumps(data, indent=2, sort_keys=True) + "\n")

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            return copy.deepcopy(self._load().get(key))

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            updated = dict(self._load())
            updated[key] = copy.deepcopy(value)
            await asyncio.to_thread(self._flush, updated)
            self._data = updated
            logger.debug("Stored key %s in %s", key, self._path)

    async def delete(self, key: str) -> None:
        async with self._lock:
            current = self._load()
            if key not in current:
                return
            updated = {k: v for k, v in current.items() if k != key}
            await asyncio.to_thread(self._flush, updated)
            self._data = updated
