"""Command-line entry point for cachewire.

``cachewire fetch`` pushes one request through a
:class:`~cachewire.transport.CachingTransport` built from the resolved
configuration; ``cachewire cache`` inspects what is stored; ``cachewire
config`` shows and seeds the configuration files.

:func:`main` is the console script. It turns a stray
:class:`~cachewire.exceptions.CachewireError` into its exit code and Ctrl-C
into exit status 130.
"""

from __future__ import annotations

import signal
import sys
from typing import Any

import typer

from cachewire import __version__
from cachewire.commands.cache import cache_app
from cachewire.commands.config import config_app
from cachewire.commands.fetch import fetch_command
from cachewire.exit_codes import EXIT_GENERIC_FAILURE
from cachewire.output import OutputFormat, OutputManager, set_output

EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="cachewire",
    help="Fetch URLs through a caching, retrying, rate-limited HTTP transport.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("fetch")(fetch_command)
app.add_typer(cache_app, name="cache", help="Compute cache keys and inspect stored responses.")
app.add_typer(config_app, name="config", help="Show or initialise configuration.")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"cachewire {__version__}")
        raise typer.Exit()


def _pick_format(json_output: bool, plain_output: bool) -> OutputFormat:
    if json_output:
        return OutputFormat.JSON
    if plain_output:
        return OutputFormat.PLAIN
    return OutputFormat.AUTO


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show version and exit."
    ),
    json_output: bool = typer.Option(False, "--json", help="Render data as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Render data as plain text."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print data, warnings and errors."),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log cache hits and retries to stderr."
    ),
) -> None:
    """Install the output manager and hook the library logger up to stderr."""
    output = OutputManager(
        format=_pick_format(json_output, plain_output),
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    output.configure_logging()


def _exit_on_interrupt(signum: int, frame: Any) -> None:  # noqa: ANN401
    # Click would otherwise turn Ctrl-C into "Aborted!" with status 1.
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_INTERRUPTED)


def main() -> None:
    """Console-script entry point; always ends in :class:`SystemExit`."""
    from cachewire.exceptions import CachewireError
    from cachewire.output import error

    signal.signal(signal.SIGINT, _exit_on_interrupt)
    try:
        app()
    except CachewireError as exc:
        error(str(exc))
        sys.exit(exc.exit_code or EXIT_GENERIC_FAILURE)
