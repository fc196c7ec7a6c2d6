"""Shared test fixtures for plughost.

Provides isolated config directories, an in-memory store, quiet output,
a Typer CLI runner, and helpers for building manifests and plugin folders.
These fixtures are discovered by pytest automatically.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import pytest

from plughost.output import OutputFormat, OutputManager, reset_output, set_output
from plughost.store import MemoryStore

# ---------------------------------------------------------------------------
# Manifest and plugin-folder builders
# ---------------------------------------------------------------------------


def _make_manifest(plugin_id: str = "sample", **overrides: Any) -> dict[str, Any]:
    """A valid raw manifest; keyword arguments replace or add keys."""
    manifest: dict[str, Any] = {
        "id": plugin_id,
        "name": plugin_id.replace("-", " ").title(),
        "version": "1.0.0",
        "description": f"The {plugin_id} plugin",
        "author": "tests",
        "capabilityTypes": ["render"],
        "hostVersionRange": ">=1.0.0",
    }
    manifest.update(overrides)
    return manifest


RENDER_SOURCE = """
class Plugin:
    def can_render(self, content):
        return True

    def render(self, content):
        return {"type": "text", "content": str(content)}

plugin = Plugin
"""


def _write_plugin(root: Path, manifest: dict[str, Any], source: str = RENDER_SOURCE, folder: Optional[str] = None) -> Path:
    """Write ``plugin.json`` + ``plugin.py`` under *root* and return the folder."""
    plugin_dir = root / (folder or manifest["id"])
    plugin_dir.mkdir(parents=True, exist_ok=True)
    (plugin_dir / "plugin.json").write_text(json.dumps(manifest), encoding="utf-8")
    (plugin_dir / "plugin.py").write_text(source, encoding="utf-8")
    return plugin_dir


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Drop the global OutputManager and CLI log handler after every test.

    Both hold references to sys.stdout/sys.stderr; CliRunner swaps those
    streams during a test and closes them afterwards.
    """
    yield
    reset_output()
    host_logger = logging.getLogger("plughost")
    for handler in list(host_logger.handlers):
        host_logger.removeHandler(handler)
    host_logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Config isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every XDG directory at *tmp_path* and clear PLUGHOST_* variables.

    Also changes the working directory to *tmp_path* so no stray
    ``plughost.json`` is picked up.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("plughost.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ("PLUGHOST_HOST_VERSION", "PLUGHOST_STATE_BACKEND", "PLUGHOST_PLUGIN_DIRS", "NO_COLOR"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Stores and output
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN, quiet OutputManager for tests that ignore output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner with a wide terminal so Rich does not wrap messages."""
    from typer.testing import CliRunner

    return CliRunner(env={"COLUMNS": "200"})


@pytest.fixture
def make_manifest():
    """Factory for valid raw manifests: ``make_manifest("id", **overrides)``."""
    return _make_manifest


@pytest.fixture
def write_plugin():
    """Factory writing a plugin folder: ``write_plugin(root, manifest, source)``."""
    return _write_plugin
