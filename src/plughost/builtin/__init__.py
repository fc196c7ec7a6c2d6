"""Plugins bundled with the host.

Each bundled plugin is a folder holding ``plugin.json`` and ``plugin.py``,
shipped as package data. They are fed through the same executor as
external plugins; only their provenance (``is_external=False``) differs.
"""

from __future__ import annotations

import json
from importlib import resources
from typing import Iterator

from plughost.plugins.discovery import MANIFEST_FILE, SOURCE_FILE, DiscoveredPlugin

BUILTIN_PLUGIN_DIRS = ("reasoning_detector", "timestamp", "message_export")
"""Bundled plugin folders, in registration order."""


def iter_builtin_plugins() -> Iterator[DiscoveredPlugin]:
    """Yield discovery tuples for every bundled plugin."""
    root = resources.files(__name__)
    for name in BUILTIN_PLUGIN_DIRS:
        folder = root / name
        manifest = json.loads((folder / MANIFEST_FILE).read_text(encoding="utf-8"))
        source = (folder / SOURCE_FILE).read_text(encoding="utf-8")
        yield DiscoveredPlugin(manifest, source, is_external=False)
