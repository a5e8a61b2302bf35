"""Canonical data models shared across scrapecache modules.

The models fall into two groups:

**Option models** -- Pydantic v2 models validating user input:
    :class:`CacheOptions`, :class:`RetryOptions`, :class:`ThrottleOptions`,
    :class:`ScrapeOptions` (construction time), and :class:`InvalidateOptions`,
    :class:`FetchOptions` (per :meth:`~scrapecache.client.scraper.Scraper.fetch`
    call).

**Runtime records** -- plain dataclasses produced while fetching:
    :class:`RetryState`, :class:`InFlightEntry`, :class:`StoredPaths`, and
    :class:`CachedArtifact`.

Pydantic validation failures never escape this module's helpers; they are
converted into :class:`~scrapecache.exceptions.ValidationError` by
:func:`validate_options`.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, TypeVar

import pydantic
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from scrapecache.exceptions import ValidationError

_ModelT = TypeVar("_ModelT", bound=BaseModel)


# --- Construction options ---


class ContentType(str, enum.Enum):
    """Content kinds the cache knows how to encode and decode."""

    JSON = "json"
    HTML = "html"


class CacheOptions(BaseModel):
    """Local content store settings.

    Files are written to ``{root_directory}/{name}/{ref path}[.{file_extension}]``.
    """

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="Enable the local cache")
    root_directory: str = Field(default="__cache", description="Cache root directory")
    name: Optional[str] = Field(
        default=None, description="Optional sub-directory under the root"
    )
    file_extension: Optional[str] = Field(
        default=None, description="Extension appended to every stored file"
    )

    @field_validator("file_extension")
    @classmethod
    def _lower_extension(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lstrip(".").lower()
        return value or None


class RetryOptions(BaseModel):
    """How many times a failed request is retried after the first attempt."""

    model_config = ConfigDict(extra="forbid")

    max_attempts: int = Field(default=0, ge=0, description="Retries after the first attempt")


class ThrottleOptions(BaseModel):
    """Outbound rate: at most ``limit`` transport calls per ``interval_ms``."""

    model_config = ConfigDict(extra="forbid")

    limit: int = Field(default=1, ge=0, description="Max calls per interval (0 = unlimited)")
    interval_ms: int = Field(default=1000, ge=0, description="Interval length in milliseconds")


class ScrapeOptions(BaseModel):
    """Options accepted by :class:`~scrapecache.client.scraper.Scraper`.

    Example::

        ScrapeOptions(
            content_type="html",
            cache={"name": "httpbin", "file_extension": "html"},
            retry={"max_attempts": 2},
            throttle={"limit": 5, "interval_ms": 1000},
        )
    """

    model_config = ConfigDict(extra="forbid")

    content_type: ContentType = ContentType.JSON
    return_raw: bool = Field(
        default=False, description="Return the httpx.Response instead of an artifact"
    )
    cache: CacheOptions = Field(default_factory=CacheOptions)
    retry: RetryOptions = Field(default_factory=RetryOptions)
    throttle: ThrottleOptions = Field(default_factory=ThrottleOptions)


# --- Call-site options ---

_UNIT_SECONDS: dict[str, float] = {
    "millisecond": 0.001,
    "second": 1,
    "minute": 60,
    "hour": 3600,
    "day": 86400,
    "week": 7 * 86400,
    "month": 30 * 86400,
    "year": 365 * 86400,
}


def parse_duration(value: Any) -> Optional[timedelta]:
    """Coerce a max-age value into a :class:`~datetime.timedelta`.

    Accepts ``None``, a ``timedelta``, a number of seconds, a ``[n, unit]``
    pair, or a ``"n unit"`` string. Units may be singular or plural
    (``"minute"``, ``"minutes"``).

    Raises:
        ValueError: If the value cannot be interpreted or is negative.
    """
    if value is None or isinstance(value, timedelta):
        duration = value
    elif isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    elif isinstance(value, (int, float)):
        duration = timedelta(seconds=value)
    else:
        if isinstance(value, str):
            value = value.split()
        try:
            amount, unit = value
        except (TypeError, ValueError):
            raise ValueError(f"duration must be [amount, unit], got {value!r}") from None
        unit = str(unit).lower()
        if unit.endswith("s"):
            unit = unit[:-1]
        if unit not in _UNIT_SECONDS:
            raise ValueError(f"unknown duration unit: {unit!r}")
        duration = timedelta(seconds=float(amount) * _UNIT_SECONDS[unit])

    if duration is not None and duration < timedelta(0):
        raise ValueError("duration must not be negative")
    return duration


class InvalidateOptions(BaseModel):
    """Cache invalidation directives for a single fetch."""

    model_config = ConfigDict(extra="forbid")

    force: bool = False
    max_age: Optional[timedelta] = None

    @field_validator("max_age", mode="before")
    @classmethod
    def _parse_max_age(cls, value: Any) -> Optional[timedelta]:
        return parse_duration(value)


class FetchOptions(BaseModel):
    """Options for one :meth:`~scrapecache.client.scraper.Scraper.fetch` call.

    Control options (``invalidate``, ``skip_cache``, ``allow_distinct_ref``,
    ``return_raw``) steer the coordinator; the remaining fields are the
    transport init and are the only ones forwarded to httpx. See
    :meth:`transport_kwargs`.
    """

    model_config = ConfigDict(extra="forbid")

    invalidate: InvalidateOptions = Field(default_factory=InvalidateOptions)
    skip_cache: bool = False
    allow_distinct_ref: bool = False
    return_raw: Optional[bool] = None

    method: str = "GET"
    headers: Optional[dict[str, str]] = None
    params: Optional[dict[str, Any]] = None
    content: Optional[str | bytes] = Field(
        default=None, validation_alias=AliasChoices("content", "body")
    )
    data: Optional[dict[str, Any]] = None
    json_body: Any = Field(default=None, validation_alias=AliasChoices("json", "json_body"))
    cookies: Optional[dict[str, str]] = None
    timeout: Optional[float] = None

    @field_validator("invalidate", mode="before")
    @classmethod
    def _coerce_invalidate(cls, value: Any) -> Any:
        # ``invalidate=True`` is shorthand for a forced refetch
        if isinstance(value, bool):
            return {"force": value}
        if value is None:
            return {}
        return value

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    def transport_kwargs(self) -> dict[str, Any]:
        """Return the keyword arguments for :meth:`httpx.AsyncClient.request`.

        Control options never appear here, and unset fields are dropped so
        httpx applies its own defaults.
        """
        kwargs: dict[str, Any] = {"method": self.method}
        if self.headers is not None:
            kwargs["headers"] = self.headers
        if self.params is not None:
            kwargs["params"] = self.params
        if self.content is not None:
            kwargs["content"] = self.content
        if self.data is not None:
            kwargs["data"] = self.data
        if self.json_body is not None:
            kwargs["json"] = self.json_body
        if self.cookies is not None:
            kwargs["cookies"] = self.cookies
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs


def format_validation_error(exc: pydantic.ValidationError) -> str:
    """Render a Pydantic error as ``field: message`` lines."""
    lines = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "value"
        lines.append(f"{loc}: {err['msg']}")
    return "; ".join(lines)


def validate_options(model: type[_ModelT], data: Any) -> _ModelT:
    """Validate *data* against *model*, raising :class:`ValidationError` on failure.

    ``None`` validates as an empty dict and an existing instance of *model*
    is returned unchanged.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data if data is not None else {})
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"Invalid {model.__name__}: {format_validation_error(exc)}"
        ) from exc


# --- Runtime records ---


@dataclass(frozen=True)
class RetryState:
    """Retry bookkeeping threaded through the fetch recursion."""

    attempts: int = 0
    error: Optional[Exception] = None

    def next(self, error: Exception) -> RetryState:
        """Return the state for the following attempt."""
        return RetryState(attempts=self.attempts + 1, error=error)


@dataclass
class InFlightEntry:
    """A pending fetch that concurrent callers for the same ref can join.

    ``future`` resolves with the owning call's final outcome; ``joined``
    counts the callers awaiting it.
    """

    future: asyncio.Future
    retry: RetryState
    joined: int = 0


@dataclass(frozen=True)
class StoredPaths:
    """Filesystem location derived for a ref (all ``None`` when absent)."""

    directory: Optional[Path]
    filename: Optional[str]
    path: Optional[Path]


@dataclass
class CachedArtifact:
    """Decoded content for a ref plus storage metadata.

    ``path`` and the timestamps are ``None`` for artifacts that were fetched
    but not stored (``skip_cache`` or a disabled cache).
    """

    ref: str
    data: Any
    path: Optional[Path] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    from_cache: bool = False

    @property
    def age(self) -> Optional[timedelta]:
        """Wall-clock time since the last write, or ``None`` if never stored."""
        if self.modified_at is None:
            return None
        return datetime.now(timezone.utc) - self.modified_at
