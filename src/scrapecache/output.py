"""Terminal output for the scrapecache CLI.

Fetched content goes to **stdout** so it can be piped into other tools;
everything else (where an artifact came from, its stored path, errors)
goes to **stderr**. Rich formatting is used only when stdout is an
interactive terminal and colour has not been disabled through ``NO_COLOR``,
``TERM=dumb`` or ``--no-color``.

:class:`OutputManager` holds the resolved preferences. The CLI callback
builds one and installs it with :func:`set_output`; commands then use the
module-level helpers (:func:`print_artifact`, :func:`info`, :func:`error`,
...) without passing the manager around.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.syntax import Syntax

from scrapecache.models import ContentType


class OutputFormat(str, Enum):
    """How fetched content is rendered on stdout.

    ``AUTO`` becomes ``RICH`` on an interactive, colour-capable terminal and
    ``PLAIN`` otherwise.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes CLI output to stdout (content) or stderr (diagnostics).

    Args:
        format: Desired output format; ``AUTO`` is resolved on creation.
        no_color: Disable colour and Rich markup.
        quiet: Suppress informational messages on stderr.
        verbose: Show debug messages on stderr.
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
            self._format = (
                OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
            )
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

    # ------------------------------------------------------------------ #
    # Content (stdout)
    # ------------------------------------------------------------------ #

    def print_artifact(self, data: Any, content_type: ContentType = ContentType.JSON) -> None:
        """Write the decoded content of an artifact to stdout.

        JSON content is pretty-printed (and syntax highlighted in Rich
        mode); HTML content is written verbatim. ``None`` prints nothing.
        """
        if data is None:
            return
        if content_type is ContentType.HTML or isinstance(data, str):
            self.print_data(str(data))
            return

        text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        if self._format == OutputFormat.RICH:
            self._stdout.print(Syntax(text, "json", theme="monokai", word_wrap=True))
        elif self._format == OutputFormat.PLAIN and isinstance(data, dict):
            for key, value in data.items():
                self.print_data(f"{key}\t{json.dumps(value, ensure_ascii=False, default=str)}")
        else:
            self.print_data(text)

    def print_data(self, text: str) -> None:
        """Print raw text to stdout."""
        print(text, file=sys.stdout, flush=True)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        """Informational message. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, "{}")

    def error(self, message: str) -> None:
        """Bold red error. Never suppressed."""
        self._emit(message, "[bold red]Error:[/bold red] {}", plain="Error: {}")

    def debug(self, message: str) -> None:
        """Debug message, only with ``--verbose``."""
        if self._verbose:
            self._emit(message, "[dim][debug] {}[/dim]", plain="[debug] {}")

    def _emit(self, message: str, markup: str, plain: str = "{}") -> None:
        if self._no_color:
            print(plain.format(message), file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup.format(message))


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the global manager (done by the CLI callback)."""
    global _output
    _output = output


def reset_output() -> None:
    """Drop the global manager; used by tests for a clean slate."""
    global _output
    _output = None


def print_artifact(data: Any, content_type: ContentType = ContentType.JSON) -> None:
    get_output().print_artifact(data, content_type)


def print_data(text: str) -> None:
    get_output().print_data(text)


def info(message: str) -> None:
    get_output().info(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
