"""Filesystem-backed content store for scrapecache.

This package provides :class:`LocalCache`, which stores fetched artifacts as
plain files whose directory layout mirrors each ref's path segments, and
:class:`LocalResource`, the path-derivation and raw I/O layer beneath it.

The cache is consumed by :class:`~scrapecache.client.scraper.Scraper` and is
controlled by the ``cache`` section of
:class:`~scrapecache.models.ScrapeOptions`.
"""

from scrapecache.cache.cache import LocalCache
from scrapecache.cache.resource import LocalResource

__all__ = ["LocalCache", "LocalResource"]
