"""Exception hierarchy for scrapecache.

All exceptions inherit from :class:`ScrapeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`scrapecache.exit_codes`.
The CLI entry point in :func:`scrapecache.app.main` catches ``ScrapeError``
and exits with the appropriate code, while unexpected exceptions produce a
crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    ScrapeError (exit 1)
    +-- ValidationError          (exit 2)
    +-- UnsupportedHandlerError  (exit 2)
    +-- ReconciliationError      (exit 3)
    +-- RequestError             (exit 4)
    +-- StoreError               (exit 5)
    +-- ConfigError              (exit 1)

Only :class:`RequestError` is retried by
:class:`~scrapecache.client.scraper.Scraper`; everything else surfaces to
the caller immediately.
"""

from __future__ import annotations

from typing import Optional

from scrapecache.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_RECONCILIATION_ERROR,
    EXIT_REQUEST_FAILED,
    EXIT_STORE_ERROR,
)


class ScrapeError(Exception):
    """Base exception for all scrapecache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ValidationError(ScrapeError):
    """Raised for malformed options or refs at entry."""

    exit_code = EXIT_INVALID_USAGE


class UnsupportedHandlerError(ScrapeError):
    """Raised when registering a handler of an unknown kind."""

    exit_code = EXIT_INVALID_USAGE


class ReconciliationError(ScrapeError):
    """Raised when a ref cannot be mapped onto the base URL.

    Callers who really want a cross-origin fetch pass
    ``allow_distinct_ref=True`` instead.
    """

    exit_code = EXIT_RECONCILIATION_ERROR

    def __init__(self, ref: str, base_url: str):
        super().__init__(
            f"ref ({ref}) cannot be reconciled with the base URL ({base_url}); "
            "if this is intentional, use the `allow_distinct_ref` option"
        )
        self.ref = ref
        self.base_url = base_url


class RequestError(ScrapeError):
    """Raised on a non-2xx response or a transport-level failure.

    Attributes:
        status: HTTP status code, or ``None`` when no response was received.
        url: The URL that was requested.
    """

    exit_code = EXIT_REQUEST_FAILED

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.url = url


class StoreError(ScrapeError):
    """Raised when the local content store cannot be read or written."""

    exit_code = EXIT_STORE_ERROR


class ConfigError(ScrapeError):
    """Raised for configuration problems (invalid project config, bad env values)."""

    exit_code = EXIT_GENERIC_FAILURE
