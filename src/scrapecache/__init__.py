"""scrapecache -- a caching, deduplicating, throttled HTTP client for scrapers.

A :class:`~scrapecache.client.Scraper` is bound to one origin. Every fetched
ref is stored on disk in a tree mirroring its URL path, so repeat fetches
are served locally until they are invalidated or expire. Concurrent fetches
of the same ref share one network call, outbound calls are rate limited,
and failed calls are retried a configurable number of times.

Typical use::

    from scrapecache import Scraper

    async with Scraper("https://httpbin.org", cache={"name": "httpbin"}) as httpbin:
        artifact = await httpbin.fetch("json", invalidate={"max_age": "1 day"})

The package also ships a small CLI (``scrapecache fetch``, ``scrapecache
path``) for fetching and inspecting cached refs from the shell.

Modules:
    client: The :class:`Scraper` request coordinator.
    cache: File-backed content store.
    reconcile: Ref to canonical URL mapping.
    throttle: Sliding-window rate limiter.
    handlers: Request, response and failed-request hooks.
    models: Pydantic option models and runtime records.
    config: Project config and environment resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr formatting with Rich.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"

from scrapecache.client import Scraper
from scrapecache.models import CachedArtifact, FetchOptions, ScrapeOptions

__all__ = ["Scraper", "CachedArtifact", "FetchOptions", "ScrapeOptions", "__version__"]
