"""Tests for scrapecache.reconcile -- ref to canonical URL mapping."""

from __future__ import annotations

import pytest

from scrapecache.exceptions import ValidationError
from scrapecache.reconcile import is_absolute, reconcile_ref, remove_slashes

ORIGIN = "https://httpbin.org"


# ---------------------------------------------------------------------------
# remove_slashes
# ---------------------------------------------------------------------------


class TestRemoveSlashes:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("/path/to/page/", "path/to/page"),
            ("//double//", "double"),
            ("no-slashes", "no-slashes"),
            ("https://httpbin.org/", "https://httpbin.org"),
        ],
    )
    def test_strips_outer_slashes(self, value: str, expected: str) -> None:
        assert remove_slashes(value) == expected

    @pytest.mark.parametrize("value", [None, "", "/", "///"])
    def test_empty_results_are_none(self, value) -> None:
        assert remove_slashes(value) is None


# ---------------------------------------------------------------------------
# is_absolute
# ---------------------------------------------------------------------------


class TestIsAbsolute:
    def test_network_schemes(self) -> None:
        assert is_absolute("https://httpbin.org/json")
        assert is_absolute("http://example.com")

    def test_relative_paths(self) -> None:
        assert not is_absolute("json")
        assert not is_absolute("path/to/https://nested")


# ---------------------------------------------------------------------------
# reconcile_ref
# ---------------------------------------------------------------------------


class TestReconcileRef:
    def test_relative_ref_joins_origin(self) -> None:
        assert reconcile_ref(ORIGIN, "path/to/page") == "https://httpbin.org/path/to/page"

    def test_surrounding_slashes_ignored(self) -> None:
        assert reconcile_ref(ORIGIN + "/", "/json/") == "https://httpbin.org/json"

    def test_absolute_ref_on_origin_is_kept(self) -> None:
        assert reconcile_ref(ORIGIN, "https://httpbin.org/json/") == "https://httpbin.org/json"

    def test_origin_itself(self) -> None:
        assert reconcile_ref(ORIGIN, ORIGIN) == ORIGIN

    @pytest.mark.parametrize(
        "ref",
        ["https://example.com/json", "http://httpbin.org/json", "ftp://httpbin.org"],
    )
    def test_foreign_refs_are_none(self, ref: str) -> None:
        assert reconcile_ref(ORIGIN, ref) is None

    @pytest.mark.parametrize("ref", ["json", "/a/b/", "https://httpbin.org/x"])
    def test_idempotent(self, ref: str) -> None:
        once = reconcile_ref(ORIGIN, ref)
        assert reconcile_ref(ORIGIN, once) == once

    @pytest.mark.parametrize("ref", ["", "/", None, 42])
    def test_invalid_refs_raise(self, ref) -> None:
        with pytest.raises(ValidationError):
            reconcile_ref(ORIGIN, ref)
