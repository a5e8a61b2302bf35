"""HTTP client module for scrapecache.

Provides :class:`Scraper`, an asynchronous client that wraps
:class:`httpx.AsyncClient` with a local file cache, in-flight request
deduplication, throttling, retry, and user handlers.

Example::

    from scrapecache.client import Scraper

    async with Scraper("https://httpbin.org", cache={"name": "httpbin"}) as httpbin:
        artifact = await httpbin.fetch("json")
"""

from scrapecache.client.scraper import Scraper

__all__ = ["Scraper"]
