"""Terminal output for the ``plughost`` CLI.

Data (plugin tables, config values, hook results) goes to **stdout**;
everything else (status lines, warnings, errors) goes to **stderr**, so
``plughost list --json | jq`` always sees clean JSON.

``AUTO`` format means Rich when stdout is a terminal and colour is allowed,
plain tab-separated text otherwise. ``NO_COLOR`` and ``TERM=dumb`` disable
colour, as does ``--no-color``.

:func:`~plughost.app.main_callback` builds one :class:`OutputManager` per
invocation and installs it with :func:`set_output`; commands call the
module-level helpers (:func:`info`, :func:`error`, :func:`print_table` ...).
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """Output formats selectable with ``--json`` and ``--plain``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes CLI output to stdout or stderr in the selected format.

    Args:
        format: Requested format; ``AUTO`` is resolved at construction.
        no_color: Disable colour and Rich markup.
        quiet: Suppress informational stderr messages.
        verbose: Show debug messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            self._format = OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
        else:
            self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    @property
    def stderr_console(self) -> Console:
        """The stderr console; the logging handler writes through it."""
        return self._stderr

    # --- stdout ---

    def format_response(self, data: Any) -> None:
        """Print a structured value (dict, list, or string) in the active format."""
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        elif self._format == OutputFormat.PLAIN:
            self._print_plain(data)
        elif isinstance(data, (dict, list)):
            text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
            self._stdout.print(Syntax(text, "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data))

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows as a Rich table, a JSON array of objects, or TSV."""
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
        elif self._format == OutputFormat.PLAIN:
            self.print_data("\t".join(headers))
            for row in rows:
                self.print_data("\t".join(row))
        else:
            table = Table(title=title, show_header=True, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    def print_lines(self, lines: list[str]) -> None:
        """Print pre-rendered text lines (``hook`` output) without markup."""
        for line in lines:
            if self._format == OutputFormat.RICH:
                self._stdout.print(line, markup=False, highlight=False)
            else:
                self.print_data(line)

    # --- stderr ---

    def _diagnostic(self, plain: str, styled: str) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._stderr.print(styled)

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnostic(f"Warning: {message}", f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnostic(f"Error: {message}", f"[bold red]Error:[/bold red] {message}")

    def suggest(self, message: str) -> None:
        if not self._quiet:
            formatted = f"→ {message}"
            self._diagnostic(formatted, f"[dim]{formatted}[/dim]")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diagnostic(f"[debug] {message}", f"[dim]\\[debug] {message}[/dim]")

    def _print_plain(self, data: Any) -> None:
        if isinstance(data, dict):
            for key, value in data.items():
                self.print_data(f"{key}\t{_plain_value(value)}")
        elif isinstance(data, list):
            for item in data:
                if isinstance(item, dict):
                    self.print_data("\t".join(_plain_value(v) for v in item.values()))
                else:
                    self.print_data(_plain_value(item))
        else:
            self.print_data(str(data))


def _plain_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


# --- Global instance ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating an ``AUTO`` one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager (test isolation)."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def print_lines(lines: list[str]) -> None:
    get_output().print_lines(lines)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
