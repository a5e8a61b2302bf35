"""Caching, deduplicating, throttled HTTP fetches -- the request coordinator.

This module provides :class:`Scraper`, the entry point of scrapecache. For
every :meth:`Scraper.fetch` call it decides whether to serve the ref from
the local cache, join a request for the same ref that is already in
flight, or start a new network fetch. It layers on:

- **Ref reconciliation** -- relative and absolute refs resolve to one
  canonical URL (see :mod:`scrapecache.reconcile`), which is also the
  cache key.
- **Local caching** -- successful responses are decoded and written to a
  :class:`~scrapecache.cache.LocalCache`; later fetches are served from
  disk unless invalidated (``force``) or older than ``max_age``.
- **In-flight deduplication** -- concurrent fetches of the same ref share
  one transport call.
- **Throttling** -- transport calls pass through a
  :class:`~scrapecache.throttle.Throttle`.
- **Retry** -- failed attempts (transport errors, non-2xx responses) are
  retried up to ``retry.max_attempts`` times, then the last error is
  raised.
- **Handlers** -- optional ``request``, ``response`` and ``failedRequest``
  hooks (see :mod:`scrapecache.handlers`).

The transport is an :class:`httpx.AsyncClient`; tests inject an
:class:`httpx.MockTransport` through the ``transport`` argument.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from scrapecache.cache import LocalCache
from scrapecache.client.response import extract_response_data, raise_for_status
from scrapecache.exceptions import ReconciliationError, RequestError, StoreError, ValidationError
from scrapecache.handlers import Handler, HandlerKind, HandlerRegistry, HandlerSet
from scrapecache.models import (
    CachedArtifact,
    ContentType,
    FetchOptions,
    InFlightEntry,
    InvalidateOptions,
    RetryOptions,
    RetryState,
    ScrapeOptions,
    ThrottleOptions,
    validate_options,
)
from scrapecache.reconcile import reconcile_ref, remove_slashes
from scrapecache.throttle import Throttle

logger = logging.getLogger(__name__)


class Scraper:
    """Caching HTTP client bound to one origin.

    Args:
        base_url: The origin every ref is resolved against, e.g.
            ``"https://httpbin.org"``. Surrounding slashes are trimmed.
        options: A :class:`~scrapecache.models.ScrapeOptions` or an
            equivalent ``dict``.
        transport: Optional httpx transport (e.g. :class:`httpx.MockTransport`).
        **overrides: Top-level option fields merged over *options*.

    Raises:
        ValidationError: If *base_url* or the options are invalid.

    Example::

        async with Scraper("https://httpbin.org", retry={"max_attempts": 2}) as httpbin:
            artifact = await httpbin.fetch("json")
            print(artifact.data["slideshow"]["title"], artifact.from_cache)
    """

    def __init__(
        self,
        base_url: str,
        options: ScrapeOptions | dict[str, Any] | None = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **overrides: Any,
    ) -> None:
        self.base_url = _validate_base_url(base_url)

        if isinstance(options, ScrapeOptions):
            options = options.model_dump(exclude_unset=True) if overrides else options
        if overrides:
            options = {**(options or {}), **overrides}
        self._options = validate_options(ScrapeOptions, options)

        self.content_type: ContentType = self._options.content_type
        self.return_raw: bool = self._options.return_raw
        self.cache: Optional[LocalCache] = None
        if self._options.cache.enabled:
            self.cache = LocalCache(self.base_url, self.content_type, self._options.cache)

        self._retry_attempts = self._options.retry.max_attempts
        self._throttle = Throttle(
            self._options.throttle.limit, self._options.throttle.interval_ms
        )
        self._handlers = HandlerRegistry()
        self._in_flight: dict[str, InFlightEntry] = {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Scraper:
        self._get_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    @property
    def options(self) -> ScrapeOptions:
        """The validated construction options."""
        return self._options

    @property
    def handlers(self) -> HandlerSet:
        """The currently registered handlers."""
        return self._handlers.handlers

    @property
    def retry_attempts(self) -> int:
        """Retries allowed after the first attempt."""
        return self._retry_attempts

    @retry_attempts.setter
    def retry_attempts(self, attempts: int) -> None:
        self._retry_attempts = validate_options(
            RetryOptions, {"max_attempts": attempts}
        ).max_attempts

    @property
    def throttle_limit(self) -> int:
        """Maximum transport calls per throttle interval."""
        return self._throttle.limit

    @throttle_limit.setter
    def throttle_limit(self, limit: int) -> None:
        self._reconfigure_throttle(limit, self._throttle.interval_ms)

    @property
    def throttle_interval(self) -> int:
        """Throttle interval in milliseconds."""
        return self._throttle.interval_ms

    @throttle_interval.setter
    def throttle_interval(self, interval_ms: int) -> None:
        self._reconfigure_throttle(self._throttle.limit, interval_ms)

    def add_handler(self, kind: HandlerKind | str, handler: Handler) -> None:
        """Register *handler* for ``request``, ``response`` or ``failedRequest``.

        Replaces any handler previously registered for that kind.

        Raises:
            UnsupportedHandlerError: If *kind* is not a supported hook point.
        """
        self._handlers.add(kind, handler)

    # ------------------------------------------------------------------ #
    # Public fetch
    # ------------------------------------------------------------------ #

    async def fetch(
        self,
        ref: str,
        options: FetchOptions | dict[str, Any] | None = None,
        *,
        retry: Optional[RetryState] = None,
        **kwargs: Any,
    ) -> CachedArtifact | httpx.Response:
        """Return the artifact for *ref*, from cache or from the network.

        Args:
            ref: A path relative to :attr:`base_url` or an absolute URL.
            options: A :class:`~scrapecache.models.FetchOptions` or ``dict``.
            retry: Internal retry state; callers normally omit it.
            **kwargs: Option fields merged over *options*, e.g.
                ``invalidate={"force": True}``, ``skip_cache=True``,
                ``method="POST"``, ``json={...}``.

        Returns:
            A :class:`~scrapecache.models.CachedArtifact`, or the
            :class:`httpx.Response` of a network fetch when ``return_raw``
            is enabled. Cache hits always return an artifact.

        Raises:
            ValidationError: On an empty ref or invalid options.
            ReconciliationError: If *ref* is foreign to the base URL and
                ``allow_distinct_ref`` is not set.
            RequestError: If every attempt failed.
            StoreError: If the cache cannot be read or written.
        """
        if isinstance(options, FetchOptions) and kwargs:
            options = options.model_dump(exclude_unset=True)
        if kwargs:
            options = {**(options or {}), **kwargs}
        fetch_options = validate_options(FetchOptions, options)
        return await self._fetch(ref, fetch_options, retry or RetryState())

    # ------------------------------------------------------------------ #
    # Local file access
    # ------------------------------------------------------------------ #

    def path_for(self, ref: str, allow_distinct_ref: bool = False) -> Optional[Path]:
        """Return the stored file path for *ref*, or ``None`` if nothing is stored."""
        if self.cache is None:
            return None
        return self.cache.get_paths(self._reconcile(ref, allow_distinct_ref)).path

    async def get_local_file(
        self,
        ref: str,
        max_age: Any = None,
        allow_distinct_ref: bool = False,
    ) -> Optional[CachedArtifact]:
        """Read *ref* from the cache without touching the network."""
        if self.cache is None:
            return None
        age = validate_options(InvalidateOptions, {"max_age": max_age}).max_age
        return await self.cache.get(self._reconcile(ref, allow_distinct_ref), age)

    async def add_local_file(
        self, ref: str, data: Any, allow_distinct_ref: bool = False
    ) -> CachedArtifact:
        """Store *data* under *ref*; later fetches of *ref* are cache hits.

        Raises:
            StoreError: If the cache is disabled or the write fails.
        """
        if self.cache is None:
            raise StoreError("Cannot add a local file: the cache is disabled")
        return await self.cache.set(self._reconcile(ref, allow_distinct_ref), data)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport, follow_redirects=True)
        return self._client

    def _reconfigure_throttle(self, limit: int, interval_ms: int) -> None:
        options = validate_options(ThrottleOptions, {"limit": limit, "interval_ms": interval_ms})
        self._throttle = Throttle(options.limit, options.interval_ms)

    def _reconcile(self, ref: str, allow_distinct_ref: bool) -> str:
        reconciled = reconcile_ref(self.base_url, ref)
        if reconciled is None:
            if not allow_distinct_ref:
                raise ReconciliationError(ref, self.base_url)
            reconciled = ref
        return reconciled

    async def _fetch(
        self, ref: str, options: FetchOptions, retry: RetryState
    ) -> CachedArtifact | httpx.Response:
        if retry.attempts > self._retry_attempts:
            if retry.error is None:
                raise ValidationError(
                    f"Retry state at attempt {retry.attempts} exceeds the "
                    f"{self._retry_attempts} allowed retries but carries no error"
                )
            raise retry.error

        canonical = self._reconcile(ref, options.allow_distinct_ref)
        canonical = await self._handlers.run_request(canonical)

        force = options.invalidate.force
        if self.cache is not None:
            if force:
                logger.debug("Invalidated cache for %s", canonical)
            else:
                artifact = await self.cache.get(canonical, options.invalidate.max_age)
                if artifact is not None:
                    logger.debug("Cache hit for %s", canonical)
                    return artifact
                logger.debug("Cache miss for %s", canonical)

        # a forced refetch never joins a request that may predate the invalidation
        pending = self._in_flight.get(canonical)
        if pending is not None and retry.error is None and not force:
            logger.debug("Joining in-flight request for %s", canonical)
            pending.joined += 1
            return await asyncio.shield(pending.future)

        entry = InFlightEntry(future=asyncio.get_running_loop().create_future(), retry=retry)
        self._in_flight.setdefault(canonical, entry)
        try:
            result = await self._attempt_or_retry(ref, canonical, options, retry, entry)
        except BaseException as exc:
            _settle(entry, error=exc)
            raise
        _settle(entry, result=result)
        return result

    async def _attempt_or_retry(
        self,
        ref: str,
        canonical: str,
        options: FetchOptions,
        retry: RetryState,
        entry: InFlightEntry,
    ) -> CachedArtifact | httpx.Response:
        try:
            return await self._attempt(canonical, options)
        except RequestError as error:
            failure = error
        finally:
            if self._in_flight.get(canonical) is entry:
                del self._in_flight[canonical]

        logger.warning(
            "Attempt %d for %s failed: %s", retry.attempts + 1, canonical, failure
        )
        await self._handlers.run_failed_request(failure, retry)
        return await self._fetch(ref, options, retry.next(failure))

    async def _attempt(
        self, canonical: str, options: FetchOptions
    ) -> CachedArtifact | httpx.Response:
        """One throttled transport call plus post-flight processing."""
        client = self._get_client()
        await self._throttle.acquire()

        logger.debug("%s %s", options.method, canonical)
        try:
            response = await client.request(url=canonical, **options.transport_kwargs())
            await response.aread()
        except httpx.HTTPError as exc:
            raise RequestError(f"Fetch to {canonical} failed: {exc}", url=canonical) from exc

        raise_for_status(response)

        handled = await self._handlers.run_response(response)
        if isinstance(handled, httpx.Response):
            await handled.aread()
            data = extract_response_data(handled, self.content_type)
        else:
            data = handled

        if self.cache is not None and not options.skip_cache:
            artifact = await self.cache.set(canonical, data)
        else:
            artifact = CachedArtifact(ref=canonical, data=data)

        return_raw = self.return_raw if options.return_raw is None else options.return_raw
        return response if return_raw else artifact

    def __repr__(self) -> str:
        return (
            f"Scraper(base_url={self.base_url!r}, content_type={self.content_type.value!r}, "
            f"retry_attempts={self._retry_attempts}, throttle={self._throttle!r})"
        )


def _validate_base_url(base_url: str) -> str:
    """Trim slashes from *base_url* and check it is an absolute http(s) URL."""
    trimmed = remove_slashes(base_url) if isinstance(base_url, str) else None
    if not trimmed:
        raise ValidationError("base_url must not be empty")
    try:
        url = httpx.URL(trimmed)
    except httpx.InvalidURL as exc:
        raise ValidationError(f"base_url must be a valid URL: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ValidationError(f"base_url must be an absolute http(s) URL, got {base_url!r}")
    return trimmed


def _settle(
    entry: InFlightEntry,
    result: Any = None,
    error: Optional[BaseException] = None,
) -> None:
    """Resolve the shared future of *entry* with the owning call's outcome."""
    future = entry.future
    if future.done():
        return
    if error is None:
        future.set_result(result)
    elif isinstance(error, asyncio.CancelledError):
        future.cancel()
    else:
        future.set_exception(error)
        if not entry.joined:
            # nobody is waiting; mark the exception as retrieved
            future.exception()
