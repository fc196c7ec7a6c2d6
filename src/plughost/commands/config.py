"""Config commands -- view and edit a plugin's persisted settings.

Provides the ``plughost config`` group. Every command takes a PLUGIN
argument: a plugin folder, or the id of a bundled plugin. Values are
checked against the plugin's ``configSchema`` and stored in the configured
state backend, without running the plugin's code.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable

import typer

from plughost.builtin import iter_builtin_plugins
from plughost.commands.host import fail, host_config
from plughost.exceptions import PlugHostError, PluginNotFoundError
from plughost.exit_codes import EXIT_INVALID_USAGE
from plughost.models import HostConfig, Manifest
from plughost.output import OutputFormat, error, format_response, get_output, info, print_table, success
from plughost.plugins.config import PluginConfigService, coerce_value, describe_form
from plughost.plugins.discovery import read_plugin_dir
from plughost.plugins.manifest import parse_manifest
from plughost.store import DiskStore, open_store

config_app = typer.Typer(no_args_is_help=True)

_PLUGIN_HELP = "Plugin folder, or the id of a bundled plugin."


def _load_manifest(target: str) -> Manifest:
    path = Path(target)
    try:
        if path.is_dir():
            return parse_manifest(read_plugin_dir(path).manifest)
        for plugin in iter_builtin_plugins():
            if plugin.plugin_id == target:
                return parse_manifest(plugin.manifest)
    except PlugHostError as exc:
        fail(exc)
    fail(PluginNotFoundError(target, "no plugin folder or bundled plugin by that name"))


def _with_service(
    config: HostConfig, manifest: Manifest, operation: Callable[[PluginConfigService], Awaitable[Any]]
) -> Any:
    async def _go() -> Any:
        store = open_store(config)
        service = PluginConfigService(store)
        service.register_schema(manifest.id, manifest.config_schema)
        try:
            return await operation(service)
        finally:
            if isinstance(store, DiskStore):
                store.close()

    try:
        return asyncio.run(_go())
    except PlugHostError as exc:
        fail(exc)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@config_app.command("form")
def config_form(
    ctx: typer.Context,
    plugin: str = typer.Argument(help=_PLUGIN_HELP),
) -> None:
    """Describe the plugin's settings form: one row per field.

    Example::

        plughost config form timestamp
    """
    config = host_config(ctx)
    manifest = _load_manifest(plugin)
    values = _with_service(config, manifest, lambda service: service.load(manifest.id))
    form = describe_form(manifest.config_schema, values)

    if get_output().format == OutputFormat.JSON:
        format_response([field.model_dump(mode="json") for field in form])
        return
    if not form:
        info(f"{manifest.id} has no settings.")
        return

    rows = []
    for field in form:
        limits = []
        if field.min is not None:
            limits.append(f">= {_cell(field.min)}")
        if field.max is not None:
            limits.append(f"<= {_cell(field.max)}")
        if field.options:
            limits.append(" | ".join(_cell(o) for o in field.options))
        rows.append(
            [field.key, field.type.value, field.label, _cell(field.value), _cell(field.default), ", ".join(limits)]
        )
    print_table(["Key", "Type", "Label", "Value", "Default", "Allowed"], rows, title=f"{manifest.name} settings")


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    plugin: str = typer.Argument(help=_PLUGIN_HELP),
) -> None:
    """Show the plugin's effective values (defaults overlaid with saved values).

    Example::

        plughost config show message-export --json
    """
    config = host_config(ctx)
    manifest = _load_manifest(plugin)
    format_response(_with_service(config, manifest, lambda service: service.load(manifest.id)))


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    plugin: str = typer.Argument(help=_PLUGIN_HELP),
    key: str = typer.Argument(help="Config key from the plugin's configSchema."),
    value: str = typer.Argument(help="New value; parsed according to the field type."),
) -> None:
    """Validate and save one setting.

    Exits with code 2 for an unknown key or unparseable value, and with
    code 6 when the value breaks the field's constraints. Nothing is saved
    in either case.

    Example::

        plughost config set timestamp format iso
        plughost config set timestamp showSeconds false
    """
    config = host_config(ctx)
    manifest = _load_manifest(plugin)
    field = manifest.config_schema.get(key)
    if field is None:
        error(f"Unknown config key for {manifest.id}: {key}")
        if manifest.config_schema:
            info(f"Known keys: {', '.join(manifest.config_schema)}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    try:
        coerced = coerce_value(field, value)
    except ValueError as exc:
        error(f"{key}: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    outcome = _with_service(config, manifest, lambda service: service.save(manifest.id, {key: coerced}))
    if not outcome.ok:
        fail(outcome.error)
    success(f"Set {manifest.id}.{key} = {_cell(coerced)}")


@config_app.command("reset")
def config_reset(
    ctx: typer.Context,
    plugin: str = typer.Argument(help=_PLUGIN_HELP),
) -> None:
    """Forget every saved value so the plugin sees its defaults again.

    Example::

        plughost config reset timestamp
    """
    config = host_config(ctx)
    manifest = _load_manifest(plugin)
    outcome = _with_service(config, manifest, lambda service: service.reset(manifest.id))
    if not outcome.ok:
        fail(outcome.error)
    success(f"Reset {manifest.id} settings to defaults.")
