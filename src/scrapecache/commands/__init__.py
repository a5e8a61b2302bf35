"""Built-in CLI commands for scrapecache.

* :mod:`~scrapecache.commands.scrape` -- ``fetch`` a ref through the cache
  and print its content, or print the ``path`` where a ref is stored.

Command callbacks are plain functions registered on the root app in
:mod:`scrapecache.app`.
"""
