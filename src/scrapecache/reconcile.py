"""Ref reconciliation -- map caller-supplied refs onto the configured origin.

A *ref* is whatever the caller passes to
:meth:`~scrapecache.client.scraper.Scraper.fetch`: either a path relative
to the origin (``"path/to/page"``) or an absolute URL. Reconciliation turns
both spellings into one canonical absolute URL, which doubles as the cache
key::

    >>> reconcile_ref("https://httpbin.org", "/json/")
    'https://httpbin.org/json'
    >>> reconcile_ref("https://httpbin.org", "https://httpbin.org/json")
    'https://httpbin.org/json'
    >>> reconcile_ref("https://httpbin.org", "http://httpbin.org/json") is None
    True

Returning ``None`` is not an error; the caller decides whether a foreign
ref is acceptable (see ``allow_distinct_ref``).
"""

from __future__ import annotations

import re
from typing import Optional

from scrapecache.exceptions import ValidationError

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def remove_slashes(value: Optional[str]) -> Optional[str]:
    """Strip every leading and trailing ``/`` from *value*.

    Returns ``None`` for ``None`` or a value made only of slashes.
    """
    if not value:
        return None
    return value.strip("/") or None


def is_absolute(ref: str) -> bool:
    """Return ``True`` if *ref* starts with a network scheme (``https://`` etc.)."""
    return _SCHEME_RE.match(ref) is not None


def reconcile_ref(origin: str, ref: str) -> Optional[str]:
    """Reconcile *ref* with *origin* into a canonical absolute URL.

    Args:
        origin: The base URL, e.g. ``"https://httpbin.org"``.
        ref: A relative path or an absolute URL.

    Returns:
        The canonical URL, or ``None`` if *ref* is absolute and does not
        start with *origin*.

    Raises:
        ValidationError: If *ref* is not a non-empty string.
    """
    if not isinstance(ref, str) or not ref.strip("/"):
        raise ValidationError(f"ref must be a non-empty string, got {ref!r}")

    origin = remove_slashes(origin) or ""
    ref = remove_slashes(ref)

    if is_absolute(ref):
        if ref.startswith(origin):
            return ref
        return None

    return origin + "/" + ref
