"""Reference discovery: read ``plugin.json`` + ``plugin.py`` folders.

The runtime itself only consumes :class:`DiscoveredPlugin` tuples; this
module is the convenience collaborator the CLI and ``reload`` use to produce
them from disk. A plugin folder looks like::

    my-plugin/
        plugin.json   # the manifest
        plugin.py     # source that binds ``plugin``
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from plughost.exceptions import ManifestValidationError

logger = logging.getLogger(__name__)

MANIFEST_FILE = "plugin.json"
SOURCE_FILE = "plugin.py"


@dataclass(frozen=True)
class DiscoveredPlugin:
    """One discovery result: raw manifest data, source text, provenance.

    Attributes:
        manifest: Decoded ``plugin.json`` (not yet validated).
        source: Plugin source text.
        is_external: ``True`` for user-installed plugins.
        path: Folder the plugin came from, when it came from disk.
    """

    manifest: dict[str, Any]
    source: str
    is_external: bool = True
    path: Optional[Path] = None

    @property
    def plugin_id(self) -> Optional[str]:
        value = self.manifest.get("id")
        return value if isinstance(value, str) else None


def read_plugin_dir(plugin_dir: str | Path, is_external: bool = True) -> DiscoveredPlugin:
    """Read one plugin folder.

    Raises:
        ManifestValidationError: If ``plugin.json`` or ``plugin.py`` is
            missing or unreadable, or the manifest is not a JSON object.
    """
    plugin_dir = Path(plugin_dir)
    manifest_file = plugin_dir / MANIFEST_FILE
    source_file = plugin_dir / SOURCE_FILE
    try:
        data = json.loads(manifest_file.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ManifestValidationError(None, f"cannot read {manifest_file}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ManifestValidationError(None, f"{manifest_file} is not UTF-8 text: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestValidationError(None, f"{manifest_file} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestValidationError(None, f"{manifest_file} must contain a JSON object")

    plugin_id = data.get("id") if isinstance(data.get("id"), str) else None
    try:
        source = source_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestValidationError(plugin_id, f"cannot read {source_file}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ManifestValidationError(plugin_id, f"{source_file} is not UTF-8 text: {exc}") from exc
    return DiscoveredPlugin(data, source, is_external, plugin_dir)


def discover(search_paths: Iterable[str | Path], is_external: bool = True) -> list[DiscoveredPlugin]:
    """Scan *search_paths* for plugin folders.

    A search path that is itself a plugin folder is read directly;
    otherwise its immediate subfolders holding a ``plugin.json`` are read in
    name order. Unreadable folders are logged and skipped. When two folders
    declare the same id the first one found wins.
    """
    found: list[DiscoveredPlugin] = []
    seen: set[str] = set()
    for raw_path in search_paths:
        search_path = Path(raw_path).expanduser()
        if not search_path.is_dir():
            logger.debug("Plugin search path does not exist: %s", search_path)
            continue
        if (search_path / MANIFEST_FILE).is_file():
            candidates = [search_path]
        else:
            candidates = [p for p in sorted(search_path.iterdir()) if (p / MANIFEST_FILE).is_file()]
        for candidate in candidates:
            try:
                plugin = read_plugin_dir(candidate, is_external)
            except ManifestValidationError as exc:
                logger.warning("Skipping plugin at %s: %s", candidate, exc)
                continue
            if plugin.plugin_id is not None:
                if plugin.plugin_id in seen:
                    logger.warning(
                        "Duplicate plugin id '%s' at %s, skipping (first found wins)",
                        plugin.plugin_id,
                        candidate,
                    )
                    continue
                seen.add(plugin.plugin_id)
            found.append(plugin)
    logger.info("Discovered %d plugin(s)", len(found))
    return found


def find_plugin(search_paths: Iterable[str | Path], plugin_id: str) -> Optional[DiscoveredPlugin]:
    """Re-read the folder providing *plugin_id*, for ``reload``."""
    for plugin in discover(search_paths):
        if plugin.plugin_id == plugin_id:
            return plugin
    return None
