"""Terminal output for the rulesmith CLI.

Data and diagnostics never share a stream:

* **stdout** carries the data a command produces (the ``inspect`` table or
  its JSON dump), so it can be piped.
* **stderr** carries everything else: progress while a spec loads, the
  generation summary, warnings, errors and next-step hints.

Rich markup is used when the terminal allows it. ``NO_COLOR`` (any value),
``TERM=dumb`` and ``--no-color`` switch every message to plain text, and a
non-terminal stdout turns the ``AUTO`` format into ``PLAIN``.

Commands do not pass an :class:`OutputManager` around. The root callback
installs one with :func:`set_output` and the module-level helpers
(:func:`info`, :func:`error`, ...) write through it.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, NamedTuple, Optional

from rich.console import Console
from rich.table import Table


class OutputFormat(str, Enum):
    """How command data is written to stdout."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class _Style(NamedTuple):
    plain: str
    markup: str
    quiet_hides: bool


# {0} is the message text
_STYLES: dict[str, _Style] = {
    "info": _Style("{0}", "{0}", True),
    "success": _Style("{0}", "[green]{0}[/green]", True),
    "warning": _Style("Warning: {0}", "[yellow]Warning:[/yellow] {0}", False),
    "error": _Style("Error: {0}", "[bold red]Error:[/bold red] {0}", False),
    "suggest": _Style("→ {0}", "[dim]→ {0}[/dim]", True),
    "debug": _Style("[debug] {0}", "[dim]\\[debug] {0}[/dim]", True),
    "progress": _Style("{0}", "[dim]{0}[/dim]", True),
}


class OutputManager:
    """Writes command data to stdout and diagnostics to stderr.

    Args:
        format: Data format. ``AUTO`` becomes ``RICH`` on a colour terminal
            and ``PLAIN`` everywhere else.
        no_color: Plain text only, no Rich markup.
        quiet: Hide info, success, hint and progress messages.
        verbose: Show debug messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or color_disabled_by_env()
        self._quiet = quiet
        self._verbose = verbose

        if format is OutputFormat.AUTO:
            rich_ok = _stdout_is_terminal() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format is OutputFormat.RICH,
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
        """Console for diagnostics; ``--verbose`` attaches the log handler to it."""
        return self._stderr

    # --- stdout ---

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_json(self, data: Any) -> None:
        """Dump *data* as indented JSON, keeping non-ASCII labels readable."""
        self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows as a Rich table, tab-separated lines, or a JSON list of objects.

        *title* is only shown by the Rich table.
        """
        if self._format is OutputFormat.JSON:
            self.print_json([dict(zip(headers, row)) for row in rows])
            return
        if self._format is OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return

        table = Table(title=title, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # --- stderr ---

    def info(self, message: str) -> None:
        self._diagnostic("info", message)

    def success(self, message: str) -> None:
        self._diagnostic("success", message)

    def warning(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnostic("warning", message)

    def error(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnostic("error", message)

    def suggest(self, message: str) -> None:
        self._diagnostic("suggest", message)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diagnostic("debug", message)

    def progress(self, message: str) -> None:
        """Progress lines are for people watching a terminal, so piped runs skip them."""
        if _stdout_is_terminal():
            self._diagnostic("progress", message)

    def _diagnostic(self, kind: str, message: str) -> None:
        style = _STYLES[kind]
        if self._quiet and style.quiet_hides:
            return
        if self._no_color:
            print(style.plain.format(message), file=sys.stderr, flush=True)
        else:
            self._stderr.print(style.markup.format(message))


def _stdout_is_terminal() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def color_disabled_by_env() -> bool:
    """True when ``NO_COLOR`` is set to anything or ``TERM`` is ``dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# --- Global instance ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one if needed."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager; the next :func:`get_output` builds a fresh one."""
    global _output
    _output = None


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


def progress(message: str) -> None:
    get_output().progress(message)
