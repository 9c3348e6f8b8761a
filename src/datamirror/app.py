"""The ``datamirror`` command line.

Usage::

    datamirror [--json | --plain] [-q] [-v] [--cache-dir DIR] [-o FILE] COMMAND ...

The resource commands live in :mod:`datamirror.commands.fetch` and the
``config`` group in :mod:`datamirror.commands.config`. :func:`main` is the
console-script entry point.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from types import FrameType
from typing import Optional

import typer

from datamirror import __version__
from datamirror.commands import CliState
from datamirror.commands.config import config_app
from datamirror.commands.fetch import get_command, key_command, path_command, status_command
from datamirror.exceptions import MirrorError
from datamirror.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED
from datamirror.output import OutputMode, Terminal, TerminalLogHandler, get_terminal, set_terminal

logger = logging.getLogger("datamirror")

app = typer.Typer(
    name="datamirror",
    help="Fetch remote resources through a per-user local cache.",
    no_args_is_help=True,
    add_completion=False,
)
app.command("get")(get_command)
app.command("path")(path_command)
app.command("key")(key_command)
app.command("status")(status_command)
app.add_typer(config_app, name="config", help="Show or change the stored settings.")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"datamirror {__version__}")
        raise typer.Exit()


def _route_logs_to_terminal(verbose: bool) -> None:
    """Attach exactly one :class:`TerminalLogHandler` to the package logger."""
    for handler in [h for h in logger.handlers if isinstance(h, TerminalLogHandler)]:
        logger.removeHandler(handler)
    logger.addHandler(TerminalLogHandler())
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Print the version and exit."
    ),
    as_json: bool = typer.Option(False, "--json", help="Render results as JSON."),
    as_plain: bool = typer.Option(False, "--plain", help="Render results as tab-separated text."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Print only results, warnings and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log cache hits and requests."),
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation."),
    cache_dir: Optional[str] = typer.Option(
        None, "--cache-dir", help="Directory for cache files instead of the temp dir."
    ),
    output_file: Optional[str] = typer.Option(
        None, "--output", "-o", help="Write results to FILE instead of stdout."
    ),
) -> None:
    mode = OutputMode.AUTO
    if as_json:
        mode = OutputMode.JSON
    elif as_plain:
        mode = OutputMode.PLAIN
    set_terminal(
        Terminal(mode, no_color=no_color, quiet=quiet, verbose=verbose, output_file=output_file)
    )
    _route_logs_to_terminal(verbose)
    ctx.obj = CliState(cache_dir=cache_dir, force=force)


def _on_sigint(signum: int, frame: Optional[FrameType]) -> None:
    sys.stderr.write("\nInterrupted.\n")
    sys.exit(EXIT_INTERRUPTED)


def _save_crash_report() -> Path:
    """Write the current traceback to the data directory and return its path."""
    from datamirror.config import get_data_dir

    report = get_data_dir() / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    report.write_text(traceback.format_exc(), encoding="utf-8")
    return report


def main() -> None:
    """Run the CLI, turning escaped errors into exit codes."""
    signal.signal(signal.SIGINT, _on_sigint)
    try:
        app()
    except MirrorError as exc:
        get_terminal().error(str(exc))
        sys.exit(exc.exit_code)
    except Exception:
        report = _save_crash_report()
        get_terminal().error(f"Unexpected error, traceback saved to {report}")
        sys.exit(EXIT_GENERIC_FAILURE)
