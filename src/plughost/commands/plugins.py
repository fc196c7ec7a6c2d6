"""Plugin commands -- list, validate, enable, disable, and run hooks.

Each command stands up a short-lived host (bundled plugins plus anything
found in the user plugins folder, the configured ``plugin_dirs`` and the
directories given on the command line), does its work, and tears the host
down again. Enabled flags and plugin config persist in the configured
state backend between invocations.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import BaseModel

from plughost.commands.host import fail, host_config, running_host
from plughost.exceptions import ManifestValidationError
from plughost.exit_codes import EXIT_INVALID_USAGE
from plughost.output import (
    OutputFormat,
    error,
    format_response,
    get_output,
    info,
    print_lines,
    print_table,
    success,
)
from plughost.plugins.discovery import MANIFEST_FILE
from plughost.plugins.manifest import check_host_compatibility, load_manifest_file
from plughost.plugins.results import RenderError, RenderItem, iter_render_items, render_text

_DIR_OPTION_HELP = "Extra folder to scan for external plugins (repeatable)."


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def list_command(
    ctx: typer.Context,
    dirs: Optional[list[Path]] = typer.Argument(
        None, help="Folders to scan for external plugins, in addition to the configured ones."
    ),
) -> None:
    """List bundled and external plugins with their state.

    Example::

        plughost list
        plughost list ./my-plugins --json
    """
    config = host_config(ctx, dirs)

    async def _collect() -> list[dict[str, Any]]:
        async with running_host(config) as manager:
            return [summary.model_dump(mode="json") for summary in manager.list_plugins()]

    summaries = asyncio.run(_collect())

    if get_output().format == OutputFormat.JSON:
        format_response(summaries)
        return
    if not summaries:
        info("No plugins found.")
        return

    headers = ["ID", "Name", "Version", "Capabilities", "Enabled", "Loaded", "Source", "Error"]
    rows = [
        [
            s["id"],
            s["name"],
            s["version"],
            ", ".join(s["capabilities"]),
            _yes_no(s["enabled"]) + (" (core)" if s["core"] else ""),
            _yes_no(s["loaded"]),
            "external" if s["external"] else "bundled",
            s["error"] or "",
        ]
        for s in summaries
    ]
    print_table(headers, rows, title="Plugins")


def validate_command(
    ctx: typer.Context,
    manifest: Path = typer.Argument(help="Path to a plugin.json, or a plugin folder."),
) -> None:
    """Validate a plugin manifest against this host.

    Exits with code 7 when the manifest is invalid or requires a different
    host version.

    Example::

        plughost validate ./my-plugin/plugin.json
    """
    config = host_config(ctx)
    path = manifest / MANIFEST_FILE if manifest.is_dir() else manifest
    try:
        parsed = load_manifest_file(path)
        check_host_compatibility(parsed, config.host_version)
    except ManifestValidationError as exc:
        error(f"{path} is not a valid plugin manifest")
        for problem in exc.errors:
            error(problem)
        raise typer.Exit(code=exc.exit_code) from None

    if get_output().format == OutputFormat.JSON:
        format_response(parsed.model_dump(mode="json", by_alias=True))
        return
    success(f"{parsed.id} {parsed.version} is valid")
    info(f"Capabilities: {', '.join(c.value for c in parsed.capability_types)}")
    if parsed.config_schema:
        info(f"Config keys: {', '.join(parsed.config_schema)}")


def _set_enabled(ctx: typer.Context, plugin_id: str, enabled: bool, dirs: Optional[list[Path]]) -> None:
    config = host_config(ctx, dirs)

    async def _toggle():
        async with running_host(config) as manager:
            if enabled:
                return await manager.enable(plugin_id)
            return await manager.disable(plugin_id)

    outcome = asyncio.run(_toggle())
    if not outcome.ok:
        fail(outcome.error)
    success(f"{'Enabled' if enabled else 'Disabled'} {plugin_id}")


def enable_command(
    ctx: typer.Context,
    plugin_id: str = typer.Argument(help="Plugin id."),
    dirs: Optional[list[Path]] = typer.Option(None, "--dir", "-d", help=_DIR_OPTION_HELP),
) -> None:
    """Enable a plugin and remember the choice.

    Example::

        plughost enable example-uppercase --dir ./plugins
    """
    _set_enabled(ctx, plugin_id, True, dirs)


def disable_command(
    ctx: typer.Context,
    plugin_id: str = typer.Argument(help="Plugin id."),
    dirs: Optional[list[Path]] = typer.Option(None, "--dir", "-d", help=_DIR_OPTION_HELP),
) -> None:
    """Disable a plugin and remember the choice. Core plugins refuse.

    Example::

        plughost disable timestamp
    """
    _set_enabled(ctx, plugin_id, False, dirs)


def _item_data(item: RenderItem) -> Any:
    if isinstance(item, RenderError):
        return {"error": item.message}
    result = item.result
    if not isinstance(result, BaseModel):
        return result
    data = result.model_dump(by_alias=True)
    if item.children:
        data["children"] = [_item_data(child) for child in item.children]
    return data


def hook_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Extension point, e.g. 'render.user-message-footer'."),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Hook context as a JSON object."),
    dirs: Optional[list[Path]] = typer.Option(None, "--dir", "-d", help=_DIR_OPTION_HELP),
) -> None:
    """Run one extension point and print what the plugins contributed.

    Each result is rendered on its own; a malformed result is shown as an
    error line without hiding the others.

    Example::

        plughost hook render.user-message-footer \\
            --context '{"message": {"role": "user", "timestamp": 1700000000}}'
    """
    hook_context: dict[str, Any] = {}
    if context:
        try:
            hook_context = json.loads(context)
        except json.JSONDecodeError as exc:
            error(f"--context is not valid JSON: {exc}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
        if not isinstance(hook_context, dict):
            error("--context must be a JSON object")
            raise typer.Exit(code=EXIT_INVALID_USAGE)

    config = host_config(ctx, dirs)

    async def _run() -> list[RenderItem]:
        async with running_host(config) as manager:
            results = await manager.execute_hook(name, hook_context)
            return list(iter_render_items(results, config.max_result_depth))

    items = asyncio.run(_run())

    if get_output().format == OutputFormat.JSON:
        format_response([_item_data(item) for item in items])
        return
    if not items:
        info(f"No results for '{name}'.")
        return
    print_lines(render_text(items))
