"""Response helpers -- classify and decode :class:`httpx.Response` bodies.

The coordinator reads every response body exactly once
(``await response.aread()``) right after the transport call. From then on
``response.content``, ``.text`` and ``.json()`` can be consumed any number
of times, so handlers, the cache writer and the caller all see the same
materialised body.
"""

from __future__ import annotations

from typing import Any

import httpx

from scrapecache.exceptions import RequestError
from scrapecache.models import ContentType


def raise_for_status(response: httpx.Response) -> None:
    """Raise :class:`RequestError` unless *response* has a 2xx status.

    Args:
        response: A response whose body has already been read.

    Raises:
        RequestError: Carrying the status code and request URL.
    """
    if response.is_success:
        return
    url = _request_url(response)
    raise RequestError(
        f"Fetch to {url} failed: {response.status_code} ({response.reason_phrase})",
        status=response.status_code,
        url=url,
    )


def extract_response_data(response: httpx.Response, content_type: ContentType) -> Any:
    """Decode the body of *response* according to *content_type*.

    JSON bodies are parsed with :meth:`httpx.Response.json`; HTML bodies are
    returned as text. An empty JSON body decodes to ``None``.

    Raises:
        RequestError: If a JSON body cannot be parsed.
    """
    if content_type is ContentType.HTML:
        return response.text

    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        url = _request_url(response)
        raise RequestError(
            f"Response from {url} is not valid JSON: {exc}",
            status=response.status_code,
            url=url,
        ) from exc


def _request_url(response: httpx.Response) -> str | None:
    try:
        return str(response.request.url)
    except RuntimeError:
        # response built without a request (e.g. by a handler)
        return None
