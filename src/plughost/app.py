"""Typer application and CLI entry point for plughost.

The root app carries the global output flags and registers the plugin
commands (``list``, ``validate``, ``enable``, ``disable``, ``hook``) and
the ``config`` group. :func:`main` is the console-script entry point
declared in ``pyproject.toml``: it maps :class:`~plughost.exceptions.PlugHostError`
to its exit code and writes a crash log for anything else.

See Also:
    :mod:`plughost.config`: Host configuration resolution.
    :mod:`plughost.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer
from rich.logging import RichHandler

from plughost import __version__
from plughost.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="plughost",
    help="Load, inspect, and configure chat-client plugins.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

from plughost.commands.config import config_app  # noqa: E402
from plughost.commands.plugins import (  # noqa: E402
    disable_command,
    enable_command,
    hook_command,
    list_command,
    validate_command,
)

app.command("list")(list_command)
app.command("validate")(validate_command)
app.command("enable")(enable_command)
app.command("disable")(disable_command)
app.command("hook")(hook_command)
app.add_typer(config_app, name="config", help="Plugin settings.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"plughost {__version__}")
        raise typer.Exit()


class _CliLogHandler(RichHandler):
    """Marks the handler installed by :func:`configure_logging`."""


def configure_logging(verbose: bool, console: Any = None) -> None:
    """Send ``plughost`` log records to stderr through Rich.

    WARNING and above by default; DEBUG with ``--verbose``. Calling this
    again replaces the handler installed by the previous call.
    """
    root = logging.getLogger("plughost")
    for handler in list(root.handlers):
        if isinstance(handler, _CliLogHandler):
            root.removeHandler(handler)
    handler = _CliLogHandler(console=console, show_path=verbose, rich_tracebacks=verbose)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    host_version: Optional[str] = typer.Option(
        None, "--host-version", help="Host version plugins are checked against."
    ),
    state_backend: Optional[str] = typer.Option(
        None, "--state-backend", help="Where plugin state lives: json, disk, or memory."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~plughost.output.OutputManager`, configures
    logging, and stores the host overrides in ``ctx.obj`` for
    :func:`~plughost.commands.host.host_config`.
    """
    from plughost.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging(verbose, output.stderr_console)

    ctx.ensure_object(dict)
    ctx.obj["host_version"] = host_version
    ctx.obj["state_backend"] = state_backend
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback under the data directory and return its path."""
    from plughost.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(f"{type(exc).__name__}: {exc}\n\n{traceback.format_exc()}")
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``plughost`` console script.

    :class:`~plughost.exceptions.PlugHostError` exits with the error's
    ``exit_code``; any other exception produces a crash log and exit 1.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from plughost.exceptions import PlugHostError
        from plughost.output import error

        if isinstance(exc, PlugHostError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
