"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- print_artifact for JSON and HTML content
- Global instance management
"""

from __future__ import annotations

import json

import pytest

from scrapecache import output as output_module
from scrapecache.models import ContentType
from scrapecache.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("scrapecache.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("scrapecache.output._is_tty", lambda: True)


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager().format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb_disables_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term_keeps_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# stdout vs stderr discipline
# ------------------------------------------------------------------ #


class TestStreams:
    def test_print_data_goes_to_stdout(self, capfd, non_tty):
        OutputManager(no_color=True).print_data("hello")
        captured = capfd.readouterr()
        assert captured.out == "hello\n"
        assert captured.err == ""

    @pytest.mark.parametrize("method", ["info", "error"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        getattr(OutputManager(no_color=True), method)("message")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "message" in captured.err

    def test_error_prefix_without_color(self, capfd, non_tty):
        OutputManager(no_color=True).error("broken")
        assert capfd.readouterr().err == "Error: broken\n"


class TestQuietAndVerbose:
    def test_quiet_suppresses_info(self, capfd, non_tty):
        mgr = OutputManager(no_color=True, quiet=True)
        mgr.info("info")
        assert capfd.readouterr().err == ""

    def test_quiet_keeps_errors(self, capfd, non_tty):
        mgr = OutputManager(no_color=True, quiet=True)
        mgr.error("broken")
        err = capfd.readouterr().err
        assert "Error: broken" in err

    def test_debug_only_when_verbose(self, capfd, non_tty):
        OutputManager(no_color=True).debug("hidden")
        OutputManager(no_color=True, verbose=True).debug("shown")
        err = capfd.readouterr().err
        assert "hidden" not in err
        assert "[debug] shown" in err


# ------------------------------------------------------------------ #
# print_artifact
# ------------------------------------------------------------------ #


class TestPrintArtifact:
    def test_json_format_pretty_prints(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_artifact({"a": [1, 2]})
        assert json.loads(capfd.readouterr().out) == {"a": [1, 2]}

    def test_plain_dict_is_tab_separated(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).print_artifact({"a": 1, "b": "x"})
        assert capfd.readouterr().out == 'a\t1\nb\t"x"\n'

    def test_plain_list_is_json(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).print_artifact([1, 2])
        assert json.loads(capfd.readouterr().out) == [1, 2]

    def test_html_is_verbatim(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_artifact("<p>x</p>", ContentType.HTML)
        assert capfd.readouterr().out == "<p>x</p>\n"

    def test_none_prints_nothing(self, capfd, non_tty):
        OutputManager().print_artifact(None)
        assert capfd.readouterr().out == ""


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_output_creates_default(self, non_tty):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_output_installs_manager(self, capfd, non_tty):
        mgr = OutputManager(no_color=True)
        set_output(mgr)
        assert get_output() is mgr
        output_module.info("via module")
        assert "via module" in capfd.readouterr().err
