"""Typer application and CLI entry point for scrapecache.

This module defines the root Typer application, its global flags, and
registers the built-in ``fetch`` and ``path`` commands.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler and invokes the Typer app.
:class:`~scrapecache.exceptions.ScrapeError` exits with the error's
``exit_code``; any other exception is written to a crash log under the
data directory.

See Also:
    :mod:`scrapecache.config`: Option resolution used by the commands.
    :mod:`scrapecache.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from scrapecache import __version__
from scrapecache.commands.scrape import fetch_command, path_command
from scrapecache.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="scrapecache",
    help="Fetch web resources through a local, deduplicating, throttled cache.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("fetch")(fetch_command)
app.command("path")(path_command)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"scrapecache {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Route ``scrapecache`` library logs to stderr through Rich when verbose."""
    from rich.console import Console
    from rich.logging import RichHandler

    logger = logging.getLogger("scrapecache")
    if not verbose:
        logger.setLevel(logging.WARNING)
        return
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
    logger.setLevel(logging.DEBUG)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output and library logs."
    ),
) -> None:
    """Root callback executed before every command.

    Installs the global :class:`~scrapecache.output.OutputManager` and, with
    ``--verbose``, a Rich log handler for the library loggers.
    """
    from scrapecache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to ``<data dir>/logs`` and return the file path."""
    from scrapecache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text("".join(traceback.format_exception(exc)))
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``scrapecache`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
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
        from scrapecache.exceptions import ScrapeError
        from scrapecache.output import error

        if isinstance(exc, ScrapeError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
