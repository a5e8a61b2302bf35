"""Tests for scrapecache.models -- option validation and runtime records."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from scrapecache.exceptions import ValidationError
from scrapecache.models import (
    CacheOptions,
    CachedArtifact,
    ContentType,
    FetchOptions,
    InvalidateOptions,
    RetryState,
    ScrapeOptions,
    parse_duration,
    validate_options,
)


# ---------------------------------------------------------------------------
# parse_duration
# ---------------------------------------------------------------------------


class TestParseDuration:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, None),
            (timedelta(minutes=5), timedelta(minutes=5)),
            (90, timedelta(seconds=90)),
            ([5, "minutes"], timedelta(minutes=5)),
            ((1, "hour"), timedelta(hours=1)),
            ("2 days", timedelta(days=2)),
            ("1 Week", timedelta(weeks=1)),
            ("1 month", timedelta(days=30)),
            ("1 year", timedelta(days=365)),
            ("250 milliseconds", timedelta(milliseconds=250)),
        ],
    )
    def test_accepted_forms(self, value, expected) -> None:
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["soon", "5", [1, "fortnight"], True, -1, "-2 hours"])
    def test_rejected_forms(self, value) -> None:
        with pytest.raises(ValueError):
            parse_duration(value)


# ---------------------------------------------------------------------------
# Option models
# ---------------------------------------------------------------------------


class TestScrapeOptions:
    def test_defaults(self) -> None:
        options = ScrapeOptions()
        assert options.content_type is ContentType.JSON
        assert options.return_raw is False
        assert options.cache.enabled is True
        assert options.cache.root_directory == "__cache"
        assert options.retry.max_attempts == 0
        assert options.throttle.limit == 1
        assert options.throttle.interval_ms == 1000

    def test_extension_is_normalised(self) -> None:
        assert CacheOptions(file_extension=" .JSON").file_extension == "json"
        assert CacheOptions(file_extension=".").file_extension is None

    def test_negative_values_rejected(self) -> None:
        with pytest.raises(ValidationError, match="retry.max_attempts"):
            validate_options(ScrapeOptions, {"retry": {"max_attempts": -1}})
        with pytest.raises(ValidationError, match="throttle.limit"):
            validate_options(ScrapeOptions, {"throttle": {"limit": -1}})

    def test_unsupported_content_type(self) -> None:
        with pytest.raises(ValidationError):
            validate_options(ScrapeOptions, {"content_type": "xml"})


class TestFetchOptions:
    def test_invalidate_shorthands(self) -> None:
        assert FetchOptions(invalidate=True).invalidate.force is True
        assert FetchOptions(invalidate=None).invalidate == InvalidateOptions()

    def test_max_age_parsed(self) -> None:
        options = FetchOptions(invalidate={"max_age": "10 minutes"})
        assert options.invalidate.max_age == timedelta(minutes=10)

    def test_transport_kwargs_exclude_control_options(self) -> None:
        options = validate_options(
            FetchOptions,
            {
                "method": "post",
                "json": {"a": 1},
                "headers": {"Accept": "application/json"},
                "skip_cache": True,
                "invalidate": {"force": True},
            },
        )
        assert options.transport_kwargs() == {
            "method": "POST",
            "json": {"a": 1},
            "headers": {"Accept": "application/json"},
        }

    def test_body_alias(self) -> None:
        options = validate_options(FetchOptions, {"body": "raw"})
        assert options.transport_kwargs()["content"] == "raw"

    def test_dump_round_trips_through_validation(self) -> None:
        options = validate_options(FetchOptions, {"json": [1], "invalidate": {"max_age": 60}})
        again = validate_options(FetchOptions, options.model_dump())
        assert again.model_dump() == options.model_dump()

    def test_unknown_option_rejected(self) -> None:
        with pytest.raises(ValidationError, match="bogus"):
            validate_options(FetchOptions, {"bogus": 1})


class TestValidateOptions:
    def test_none_is_empty(self) -> None:
        assert validate_options(FetchOptions, None) == FetchOptions()

    def test_instance_returned_unchanged(self) -> None:
        options = ScrapeOptions()
        assert validate_options(ScrapeOptions, options) is options


# ---------------------------------------------------------------------------
# Runtime records
# ---------------------------------------------------------------------------


class TestRuntimeRecords:
    def test_retry_state_next(self) -> None:
        error = RuntimeError("boom")
        state = RetryState().next(error)
        assert state.attempts == 1
        assert state.error is error
        assert state.next(error).attempts == 2

    def test_artifact_age(self) -> None:
        artifact = CachedArtifact(
            ref="https://httpbin.org/json",
            data={},
            modified_at=datetime.now(timezone.utc) - timedelta(hours=1),
        )
        assert timedelta(minutes=59) < artifact.age < timedelta(minutes=61)

    def test_unstored_artifact_has_no_age(self) -> None:
        assert CachedArtifact(ref="x", data=None).age is None
