"""Content-aware local cache for fetched artifacts.

:class:`LocalCache` sits on top of :class:`~scrapecache.cache.resource.LocalResource`
and adds what the raw file layer does not know about:

* **Encoding** -- JSON bodies are serialised with :func:`json.dumps` and
  parsed back with :func:`json.loads`; HTML bodies are stored verbatim.
* **Expiry** -- :meth:`LocalCache.get` treats artifacts older than a
  caller-supplied ``max_age`` as a miss (never as an error).
* **Artifacts** -- reads and writes return
  :class:`~scrapecache.models.CachedArtifact` records carrying the decoded
  data, the stored path, and file timestamps.

File I/O runs in a worker thread so that the coordinator's event loop is
never blocked on disk access.

See Also:
    :class:`~scrapecache.models.CacheOptions` -- the Pydantic model that
    controls ``root_directory``, ``name`` and ``file_extension``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from scrapecache.cache.resource import LocalResource
from scrapecache.exceptions import StoreError
from scrapecache.models import CacheOptions, CachedArtifact, ContentType, StoredPaths

logger = logging.getLogger(__name__)


class LocalCache:
    """Filesystem cache keyed by canonical ref.

    Args:
        origin: Base URL; refs below it are stored relative to the root.
        content_type: ``"json"`` or ``"html"``, selects the codec.
        options: Location settings (root directory, name, extension).

    Example::

        from scrapecache.cache import LocalCache
        from scrapecache.models import CacheOptions

        cache = LocalCache("https://httpbin.org", "json", CacheOptions(name="httpbin"))
        await cache.set("https://httpbin.org/json", {"slideshow": {}})
        artifact = await cache.get("https://httpbin.org/json", timedelta(hours=1))
    """

    def __init__(
        self,
        origin: str,
        content_type: ContentType | str = ContentType.JSON,
        options: Optional[CacheOptions] = None,
    ) -> None:
        options = options or CacheOptions()
        self.content_type = _content_type(content_type)
        self.resource = LocalResource(
            origin,
            root_directory=options.root_directory,
            name=options.name,
            extension=options.file_extension,
        )
        self._encode, self._decode = _codec(self.content_type)

    def derive_paths(self, ref: str) -> StoredPaths:
        """Storage location for *ref*, whether or not it exists."""
        return self.resource.derive_paths(ref)

    def get_paths(self, ref: str) -> StoredPaths:
        """Storage location for *ref* if it exists, otherwise all ``None``."""
        return self.resource.get_paths(ref)

    async def get(
        self, ref: str, max_age: Optional[timedelta] = None
    ) -> Optional[CachedArtifact]:
        """Look up a cached artifact.

        Args:
            ref: Canonical ref (the cache key).
            max_age: If given, artifacts whose age exceeds it are a miss.

        Returns:
            The decoded :class:`CachedArtifact` with ``from_cache=True``, or
            ``None`` on a miss.

        Raises:
            StoreError: If the file cannot be read or decoded.
        """
        stamps = await asyncio.to_thread(self.resource.stat, ref)
        if stamps is None:
            return None
        created_at, modified_at = stamps

        if max_age is not None:
            age = datetime.now(timezone.utc) - modified_at
            if age > max_age:
                logger.debug("Cache entry for %s is stale (age %s > %s)", ref, age, max_age)
                return None

        try:
            raw = await asyncio.to_thread(self.resource.read, ref)
        except StoreError:
            logger.error("Cannot get %s from cache", ref)
            raise
        if raw is None:
            return None

        try:
            data = self._decode(raw)
        except ValueError as exc:
            logger.error("Cannot decode cached %s", ref)
            raise StoreError(f"Cached content for {ref} is not valid {self.content_type.value}") from exc

        return CachedArtifact(
            ref=ref,
            data=data,
            path=self.resource.locate(ref).path,
            created_at=created_at,
            modified_at=modified_at,
            from_cache=True,
        )

    async def set(self, ref: str, data: Any) -> CachedArtifact:
        """Encode *data* and store it under *ref*, replacing any previous value.

        Returns:
            The stored :class:`CachedArtifact` (``from_cache=False``).

        Raises:
            StoreError: If *data* cannot be encoded or the write fails.
        """
        try:
            encoded = self._encode(data)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Cannot encode {ref} as {self.content_type.value}: {exc}") from exc

        try:
            path = await asyncio.to_thread(self.resource.write, ref, encoded)
            stamps = await asyncio.to_thread(self.resource.stat, ref)
        except StoreError:
            logger.error("Cannot set %s in cache", ref)
            raise

        created_at, modified_at = stamps if stamps else (None, None)
        return CachedArtifact(
            ref=ref,
            data=data,
            path=path,
            created_at=created_at,
            modified_at=modified_at,
            from_cache=False,
        )


def _content_type(value: ContentType | str) -> ContentType:
    try:
        return ContentType(value)
    except ValueError:
        raise StoreError(f"Content of type '{value}' is unsupported") from None


def _codec(content_type: ContentType) -> tuple[Callable[[Any], str], Callable[[str], Any]]:
    """Return ``(encode, decode)`` for *content_type*."""
    if content_type is ContentType.JSON:
        return (lambda data: json.dumps(data, ensure_ascii=False)), json.loads
    return _as_text, _as_text


def _as_text(data: Any) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8")
    if not isinstance(data, str):
        raise TypeError(f"HTML content must be str, got '{type(data).__name__}'")
    return data
