"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~scrapecache.exceptions.ScrapeError` subclass.
Shell scripts driving ``scrapecache fetch`` can inspect the exit code to
tell a rejected ref from a failed request without parsing stderr.

Example::

    $ scrapecache fetch https://httpbin.org status/503 --retries 2
    $ echo $?
    4   # EXIT_REQUEST_FAILED -- every attempt failed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid options, an empty ref, or an unsupported handler kind."""

EXIT_RECONCILIATION_ERROR = 3
"""The ref could not be reconciled with the base URL."""

EXIT_REQUEST_FAILED = 4
"""The HTTP request failed (non-2xx or transport error) after all retries."""

EXIT_STORE_ERROR = 5
"""The local content store could not be read or written."""

EXIT_NOT_FOUND = 6
"""Nothing is stored locally for the requested ref."""
