"""Shared test fixtures for scrapecache.

Provides fixtures for isolating the working directory and environment,
managing the global output state, building counting mock transports, and
running CLI commands. These fixtures are discovered by pytest and
available to every test module without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from scrapecache.config import ENV_VARS
from scrapecache.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager holds on to sys.stdout/sys.stderr from creation time.
    CliRunner swaps those streams per invocation, so a stale manager would
    write to closed files.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the test inside *tmp_path* with no ``SCRAPECACHE_*`` variables set.

    The cache root defaults to ``__cache`` relative to the working
    directory, so every file a test writes lands under *tmp_path*.
    ``XDG_DATA_HOME`` is redirected as well so crash logs stay local.

    Returns:
        The tmp_path root directory.
    """
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Transport fixtures
# ---------------------------------------------------------------------------


class CountingTransport(httpx.MockTransport):
    """MockTransport that records every request it serves.

    Args:
        handler: Called with each :class:`httpx.Request`; returns the
            :class:`httpx.Response` to serve.
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    @property
    def calls(self) -> int:
        return len(self.requests)


def echo_json(request: httpx.Request) -> httpx.Response:
    """Serve ``{"url": ..., "method": ...}`` for every request."""
    return httpx.Response(200, json={"url": str(request.url), "method": request.method})


@pytest.fixture
def transport() -> CountingTransport:
    """A counting transport that answers every request with JSON."""
    return CountingTransport(echo_json)


@pytest.fixture
def make_transport() -> Callable[..., CountingTransport]:
    """Factory for counting transports with a custom handler."""
    return CountingTransport


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def write_json() -> Callable[[Path, Any], None]:
    """Return a helper writing *data* as JSON to *path*, creating parent dirs."""

    def _write(path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")

    return _write


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
