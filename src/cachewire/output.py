"""Terminal output for the cachewire CLI.

Response bodies, cache keys and config dumps are *data* and go to stdout.
Everything else (status lines, headers with ``--include``, warnings,
errors, library log records) is a *diagnostic* and goes to stderr, so
``cachewire fetch URL > page.html`` captures only the body.

Rendering depends on :class:`OutputFormat`: Rich styling on an interactive
terminal, tab-separated text when piped, JSON with ``--json``. ``NO_COLOR``
and ``TERM=dumb`` switch colour off.

Commands talk to the process-wide :class:`OutputManager` through the
module-level shortcuts (:func:`info`, :func:`error`, :func:`print_table`
and friends). :func:`~cachewire.app.main_callback` installs the manager
with :func:`set_output`.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Callable, NamedTuple, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """How data written to stdout is rendered.

    ``AUTO`` picks ``RICH`` for a colour-capable TTY and ``PLAIN`` otherwise.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class _Diagnostic(NamedTuple):
    prefix: str
    style: Optional[str]
    quiet_hides: bool


_DIAGNOSTICS: dict[str, _Diagnostic] = {
    "info": _Diagnostic("", None, True),
    "success": _Diagnostic("", "green", True),
    "suggest": _Diagnostic("→ ", "dim", True),
    "warning": _Diagnostic("Warning: ", "yellow", False),
    "error": _Diagnostic("Error: ", "bold red", False),
    "debug": _Diagnostic("[debug] ", "dim", False),
}


def _stdout_is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _color_disabled_by_env() -> bool:
    """True when ``NO_COLOR`` is set to anything, or ``TERM`` is ``dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


class OutputManager:
    """Holds the CLI's rendering preferences and its two Rich consoles.

    Args:
        format: Rendering for stdout data. ``AUTO`` is resolved once, here.
        no_color: Force colour off regardless of the environment.
        quiet: Hide informational diagnostics. Warnings and errors stay.
        verbose: Show debug diagnostics and debug log records.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _color_disabled_by_env()
        self._quiet = quiet
        self._verbose = verbose
        if format == OutputFormat.AUTO:
            rich_ok = _stdout_is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format
        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
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

    def configure_logging(self, logger_name: str = "cachewire") -> logging.Logger:
        """Send records from *logger_name* to the stderr console.

        Warnings (such as failed cache writes) always show; cache hits and
        retries are debug records and need ``--verbose``. A handler left by
        an earlier call is replaced, and records stop propagating to the
        root logger.
        """
        log = logging.getLogger(logger_name)
        for stale in [h for h in log.handlers if isinstance(h, RichHandler)]:
            log.removeHandler(stale)
        log.addHandler(
            RichHandler(console=self._stderr, show_time=False, show_path=False, markup=False)
        )
        log.setLevel(logging.DEBUG if self._verbose else logging.WARNING)
        log.propagate = False
        return log

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        """Write *text* to stdout verbatim, plus a newline."""
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any, content_type: str = "application/json") -> None:
        """Render a structured value (or a JSON document as text) to stdout."""
        if self._format == OutputFormat.JSON:
            if isinstance(data, str):
                try:
                    data = json.loads(data)
                except ValueError:
                    self.print_data(data)
                    return
            self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))
            return

        if self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
            return

        if isinstance(data, str) and "json" in content_type:
            try:
                data = json.loads(data)
            except ValueError:
                pass
        if isinstance(data, (dict, list)):
            text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
            self._stdout.print(Syntax(text, "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data), markup=False, highlight=False)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Render rows as a Rich table, a JSON array of objects, or TSV."""
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
        elif self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
        else:
            table = Table(title=title, header_style="bold cyan")
            for name in headers:
                table.add_column(name)
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        self._diagnose("info", message)

    def success(self, message: str) -> None:
        self._diagnose("success", message)

    def suggest(self, message: str) -> None:
        """Next-step hint, e.g. the command that would fill a cache miss."""
        self._diagnose("suggest", message)

    def warning(self, message: str) -> None:
        self._diagnose("warning", message)

    def error(self, message: str) -> None:
        self._diagnose("error", message)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diagnose("debug", message)

    def _diagnose(self, kind: str, message: str) -> None:
        diag = _DIAGNOSTICS[kind]
        if self._quiet and diag.quiet_hides:
            return
        text = diag.prefix + message
        if self._no_color or diag.style is None:
            print(text, file=sys.stderr, flush=True)
        else:
            self._stderr.print(
                text, style=diag.style, markup=False, highlight=False, soft_wrap=True
            )


def _plain_lines(data: Any) -> list[str]:
    if isinstance(data, dict):
        return [f"{key}\t{value}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
            for item in data
        ]
    return [str(data)]


# ------------------------------------------------------------------ #
# Process-wide instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one on first use."""
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


def format_response(data: Any, content_type: str = "application/json") -> None:
    get_output().format_response(data, content_type)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def _shortcut(name: str) -> Callable[[str], None]:
    def emit(message: str) -> None:
        getattr(get_output(), name)(message)

    emit.__name__ = emit.__qualname__ = name
    emit.__doc__ = f"Shortcut for :meth:`OutputManager.{name}` on the installed manager."
    return emit


info = _shortcut("info")
success = _shortcut("success")
suggest = _shortcut("suggest")
warning = _shortcut("warning")
error = _shortcut("error")
debug = _shortcut("debug")
