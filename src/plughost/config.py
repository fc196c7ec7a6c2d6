"""Host configuration with XDG paths, atomic writes, and precedence resolution.

This module handles the host's own persistent configuration (plugin
configuration lives in :mod:`plughost.plugins.config`):

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.plughost/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Host config** -- A single :class:`~plughost.models.HostConfig` JSON file
  (host version, hook defaults, sandbox allowlist, store backend, plugin
  folders).
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and the user config file
  into the effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from plughost.exceptions import ConfigError
from plughost.models import HostConfig

_APP_NAME = "plughost"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "plughost.json"

ENV_HOST_VERSION = "PLUGHOST_HOST_VERSION"
ENV_STATE_BACKEND = "PLUGHOST_STATE_BACKEND"
ENV_PLUGIN_DIRS = "PLUGHOST_PLUGIN_DIRS"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/plughost/`` (default ``~/.config/plughost/``).
    On macOS/Windows: ``~/.plughost/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the ``diskcache`` store when ``state_backend`` is ``disk``.

    On Linux/BSD: ``$XDG_CACHE_HOME/plughost/`` (default ``~/.cache/plughost/``).
    On macOS/Windows: ``~/.plughost/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (plugin state, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/plughost/`` (default ``~/.local/share/plughost/``).
    On macOS/Windows: ``~/.plughost/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_user_plugins_dir() -> Path:
    """Return ``<data_dir>/plugins/``, the default home of user-installed plugins."""
    path = get_data_dir() / "plugins"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On any failure the temp file is cleaned up and *path* is left as it was.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Host config ---


def host_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_host_config() -> HostConfig:
    """Load the host configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~plughost.models.HostConfig`, or a default
        instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = host_config_path()
    if not path.is_file():
        return HostConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return HostConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid host config at {path}: {exc}") from exc


def save_host_config(config: HostConfig) -> None:
    """Persist the host configuration atomically to disk."""
    data = config.model_dump(mode="json")
    atomic_write(host_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local overrides from ``./plughost.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Precedence resolution ---


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    host_version = os.environ.get(ENV_HOST_VERSION)
    if host_version:
        overrides["host_version"] = host_version
    backend = os.environ.get(ENV_STATE_BACKEND)
    if backend:
        overrides["state_backend"] = backend
    dirs = os.environ.get(ENV_PLUGIN_DIRS)
    if dirs:
        overrides["plugin_dirs"] = [d for d in dirs.split(os.pathsep) if d]
    return overrides


def resolve_config(
    cli_host_version: Optional[str] = None,
    cli_state_backend: Optional[str] = None,
    cli_plugin_dirs: Optional[list[str]] = None,
) -> HostConfig:
    """Resolve the effective host configuration.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``PLUGHOST_HOST_VERSION``,
           ``PLUGHOST_STATE_BACKEND``, ``PLUGHOST_PLUGIN_DIRS`` as an
           ``os.pathsep``-separated list)
        3. Project config (``./plughost.json``)
        4. User config (``~/.config/plughost/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer holds an invalid value.
    """
    merged = load_host_config().model_dump()

    project = load_project_config()
    if project is not None:
        merged.update(project)

    merged.update(_env_overrides())

    if cli_host_version is not None:
        merged["host_version"] = cli_host_version
    if cli_state_backend is not None:
        merged["state_backend"] = cli_state_backend
    if cli_plugin_dirs:
        merged["plugin_dirs"] = list(cli_plugin_dirs)

    try:
        return HostConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid host configuration: {exc}") from exc
