"""User handler slots and the registry that runs them.

A :class:`~scrapecache.client.scraper.Scraper` exposes three optional hook
points, each holding at most one handler:

* ``request`` -- called with the canonical ref as an :class:`httpx.URL`
  before the cache lookup. Its return value (URL or string) becomes the
  effective ref for the rest of the attempt; ``None`` keeps the original.
* ``response`` -- called with the already-read :class:`httpx.Response` of a
  successful (2xx) fetch. It may return ``None`` (keep the response), a
  replacement response, or replacement data to cache and return.
* ``failedRequest`` -- called with the :class:`~scrapecache.exceptions.RequestError`
  and the current :class:`~scrapecache.models.RetryState` whenever an
  attempt fails. Observation only: its return value is ignored.

Handlers may be plain functions or coroutines. Exceptions raised by a
handler propagate to the caller of ``fetch``.
"""

from __future__ import annotations

import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from scrapecache.exceptions import RequestError, UnsupportedHandlerError
from scrapecache.models import RetryState

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class HandlerKind(str, enum.Enum):
    """The hook points a handler can be registered for."""

    REQUEST = "request"
    RESPONSE = "response"
    FAILED_REQUEST = "failedRequest"

    @classmethod
    def parse(cls, kind: HandlerKind | str) -> HandlerKind:
        """Resolve *kind*, accepting ``"failed_request"`` as an alias.

        Raises:
            UnsupportedHandlerError: If *kind* names no hook point.
        """
        if isinstance(kind, cls):
            return kind
        if kind == "failed_request":
            return cls.FAILED_REQUEST
        try:
            return cls(kind)
        except ValueError:
            supported = ", ".join(repr(k.value) for k in cls)
            raise UnsupportedHandlerError(
                f"Unsupported handler kind {kind!r}; expected one of {supported}"
            ) from None


@dataclass
class HandlerSet:
    """One optional handler per hook point."""

    request: Optional[Handler] = None
    response: Optional[Handler] = None
    failed_request: Optional[Handler] = None


class HandlerRegistry:
    """Holds the :class:`HandlerSet` of one scraper and invokes its handlers.

    Registering a handler replaces any previous handler of the same kind.
    There is no unregister operation.
    """

    _SLOTS = {
        HandlerKind.REQUEST: "request",
        HandlerKind.RESPONSE: "response",
        HandlerKind.FAILED_REQUEST: "failed_request",
    }

    def __init__(self) -> None:
        self.handlers = HandlerSet()

    def add(self, kind: HandlerKind | str, handler: Handler) -> None:
        """Register *handler* for *kind*.

        Raises:
            UnsupportedHandlerError: If *kind* is unknown or *handler* is
                not callable.
        """
        resolved = HandlerKind.parse(kind)
        if not callable(handler):
            raise UnsupportedHandlerError(
                f"Handler for {resolved.value!r} must be callable, got {type(handler).__name__}"
            )
        setattr(self.handlers, self._SLOTS[resolved], handler)
        logger.debug("Registered %s handler %r", resolved.value, handler)

    def get(self, kind: HandlerKind | str) -> Optional[Handler]:
        """Return the handler registered for *kind*, if any."""
        return getattr(self.handlers, self._SLOTS[HandlerKind.parse(kind)])

    async def run_request(self, ref: str) -> str:
        """Run the ``request`` handler and return the effective ref."""
        handler = self.handlers.request
        if handler is None:
            return ref
        result = await _call(handler, httpx.URL(ref))
        if result is None:
            return ref
        return str(result)

    async def run_response(self, response: httpx.Response) -> Any:
        """Run the ``response`` handler.

        Returns:
            The original *response* when no handler is registered or the
            handler returned ``None``; otherwise the handler's result.
        """
        handler = self.handlers.response
        if handler is None:
            return response
        result = await _call(handler, response)
        return response if result is None else result

    async def run_failed_request(self, error: RequestError, retry: RetryState) -> None:
        """Run the ``failedRequest`` handler, discarding its return value."""
        handler = self.handlers.failed_request
        if handler is None:
            return
        await _call(handler, error, retry)


async def _call(handler: Handler, *args: Any) -> Any:
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
