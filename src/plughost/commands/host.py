"""Stand up a plugin host for the duration of one CLI command."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Iterable, NoReturn, Optional

import typer

from plughost.builtin import iter_builtin_plugins
from plughost.config import get_user_plugins_dir, resolve_config
from plughost.exceptions import PlugHostError
from plughost.models import HostConfig
from plughost.output import debug, error, warning
from plughost.plugins.discovery import DiscoveredPlugin, discover, find_plugin
from plughost.plugins.manager import PluginManager, PluginRecord
from plughost.store import DiskStore, KeyValueStore, open_store


def fail(exc: PlugHostError) -> NoReturn:
    """Print *exc* and exit with its exit code."""
    error(str(exc))
    raise typer.Exit(code=exc.exit_code)


def host_config(ctx: typer.Context, extra_dirs: Optional[Iterable[Path]] = None) -> HostConfig:
    """Resolve the host configuration from the global flags stored on *ctx*.

    Directories given on the command line are added after the configured
    ``plugin_dirs``.
    """
    options = ctx.obj or {}
    try:
        config = resolve_config(
            cli_host_version=options.get("host_version"),
            cli_state_backend=options.get("state_backend"),
        )
    except PlugHostError as exc:
        fail(exc)
    if extra_dirs:
        config = config.model_copy(
            update={"plugin_dirs": [*config.plugin_dirs, *(str(d) for d in extra_dirs)]}
        )
    return config


def search_paths(config: HostConfig) -> list[Path]:
    """External plugin folders: the user plugins dir, then ``plugin_dirs``."""
    return [get_user_plugins_dir(), *(Path(d) for d in config.plugin_dirs)]


def collect_plugins(config: HostConfig) -> list[DiscoveredPlugin]:
    plugins = list(iter_builtin_plugins())
    plugins.extend(discover(search_paths(config), is_external=True))
    return plugins


def _close_store(store: KeyValueStore) -> None:
    if isinstance(store, DiskStore):
        store.close()


@asynccontextmanager
async def running_host(config: HostConfig) -> AsyncIterator[PluginManager]:
    """Register bundled and discovered plugins; tear everything down on exit.

    Plugins that fail to register are reported as warnings. Their records
    stay in the manager so ``list`` can show the error.
    """
    store = open_store(config)
    paths = search_paths(config)

    def rediscover(record: PluginRecord) -> Optional[DiscoveredPlugin]:
        return find_plugin(paths, record.id)

    manager = PluginManager(config, store=store, rediscover=rediscover)
    try:
        for outcome in await manager.register_all(collect_plugins(config)):
            if not outcome.ok:
                warning(str(outcome.error))
        debug(f"Registered {len(manager.records)} plugin(s)")
        yield manager
    finally:
        await manager.close()
        _close_store(store)
