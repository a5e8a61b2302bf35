"""Scrape commands -- fetch refs through the cache from the shell.

``scrapecache fetch BASE_URL REF`` resolves options (project config,
environment, flags), fetches the ref through a
:class:`~scrapecache.client.Scraper`, prints the decoded content to stdout
and reports on stderr whether it came from the cache.

``scrapecache path BASE_URL REF`` prints where a ref is stored without
touching the network.

Both commands build their scraper through :func:`create_scraper`, which
tests replace to inject a mock transport.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import typer

from scrapecache.client import Scraper
from scrapecache.exceptions import ScrapeError
from scrapecache.exit_codes import EXIT_INVALID_USAGE, EXIT_NOT_FOUND
from scrapecache.models import CachedArtifact, ContentType, ScrapeOptions
from scrapecache.output import debug, error, info, print_artifact, print_data


def create_scraper(base_url: str, options: ScrapeOptions) -> Scraper:
    """Build the scraper used by the CLI commands."""
    return Scraper(base_url, options)


def _cli_overrides(
    content_type: Optional[ContentType] = None,
    retries: Optional[int] = None,
    cache_dir: Optional[str] = None,
    cache_name: Optional[str] = None,
    extension: Optional[str] = None,
    throttle_limit: Optional[int] = None,
    throttle_interval: Optional[int] = None,
) -> dict[str, Any]:
    """Translate CLI flags into a nested :class:`ScrapeOptions` dict, skipping unset flags."""
    sections: dict[str, dict[str, Any]] = {
        "cache": {"root_directory": cache_dir, "name": cache_name, "file_extension": extension},
        "retry": {"max_attempts": retries},
        "throttle": {"limit": throttle_limit, "interval_ms": throttle_interval},
    }
    overrides: dict[str, Any] = {}
    if content_type is not None:
        overrides["content_type"] = content_type.value
    for section, values in sections.items():
        given = {key: value for key, value in values.items() if value is not None}
        if given:
            overrides[section] = given
    return overrides


def _parse_headers(headers: Optional[list[str]]) -> Optional[dict[str, str]]:
    """Parse ``Name: value`` pairs.

    Raises:
        typer.Exit: With code 2 on a header without a colon.
    """
    if not headers:
        return None
    parsed: dict[str, str] = {}
    for header in headers:
        name, sep, value = header.partition(":")
        if not sep or not name.strip():
            error(f"Invalid header {header!r}; expected 'Name: value'")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        parsed[name.strip()] = value.strip()
    return parsed


def _parse_body(body: Optional[str]) -> dict[str, Any]:
    """Send *body* as JSON if it parses as JSON, otherwise as raw content."""
    if body is None:
        return {}
    try:
        return {"json": json.loads(body)}
    except (json.JSONDecodeError, TypeError):
        return {"content": body}


async def _fetch(
    base_url: str, ref: str, options: ScrapeOptions, fetch_options: dict[str, Any]
) -> CachedArtifact:
    async with create_scraper(base_url, options) as scraper:
        return await scraper.fetch(ref, fetch_options)


def fetch_command(
    base_url: str = typer.Argument(help="Origin the ref belongs to, e.g. https://httpbin.org."),
    ref: str = typer.Argument(help="Path relative to BASE_URL, or an absolute URL."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Ignore the cached copy and refetch."
    ),
    max_age: Optional[str] = typer.Option(
        None, "--max-age", help="Refetch if the cached copy is older, e.g. '5 minutes'."
    ),
    skip_cache: bool = typer.Option(
        False, "--skip-cache", help="Do not store the fetched content."
    ),
    allow_distinct_ref: bool = typer.Option(
        False, "--allow-distinct-ref", help="Allow a REF outside BASE_URL."
    ),
    content_type: Optional[ContentType] = typer.Option(
        None, "--content-type", help="How to decode and store the body."
    ),
    retries: Optional[int] = typer.Option(
        None, "--retries", min=0, help="Retries after the first failed attempt."
    ),
    cache_dir: Optional[str] = typer.Option(None, "--cache-dir", help="Cache root directory."),
    cache_name: Optional[str] = typer.Option(
        None, "--cache-name", help="Sub-directory under the cache root."
    ),
    extension: Optional[str] = typer.Option(
        None, "--extension", help="File extension for stored files."
    ),
    throttle_limit: Optional[int] = typer.Option(
        None, "--throttle-limit", min=0, help="Max requests per interval (0 = unlimited)."
    ),
    throttle_interval: Optional[int] = typer.Option(
        None, "--throttle-interval", min=0, help="Throttle interval in milliseconds."
    ),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Request header as 'Name: value' (repeatable)."
    ),
    body: Optional[str] = typer.Option(
        None, "--body", "-d", help="Request body; sent as JSON when it parses as JSON."
    ),
) -> None:
    """Fetch REF through the cache and print its content.

    Example::

        scrapecache fetch https://httpbin.org json
        scrapecache fetch https://httpbin.org json --max-age "1 hour"
        scrapecache fetch https://httpbin.org post -X POST -d '{"a": 1}' --skip-cache
    """
    from scrapecache.config import resolve_options

    fetch_options: dict[str, Any] = {
        "invalidate": {"force": force, "max_age": max_age},
        "skip_cache": skip_cache,
        "allow_distinct_ref": allow_distinct_ref,
        "return_raw": False,
        "method": method,
        "headers": _parse_headers(header),
        **_parse_body(body),
    }

    try:
        options = resolve_options(
            _cli_overrides(
                content_type,
                retries,
                cache_dir,
                cache_name,
                extension,
                throttle_limit,
                throttle_interval,
            )
        )
        debug(f"Resolved options: {options.model_dump(mode='json')}")
        artifact = asyncio.run(_fetch(base_url, ref, options, fetch_options))
    except ScrapeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if artifact.from_cache:
        info(f"cached {artifact.ref} ({artifact.path})")
    elif artifact.path is not None:
        info(f"fetched {artifact.ref} -> {artifact.path}")
    else:
        info(f"fetched {artifact.ref} (not stored)")
    print_artifact(artifact.data, options.content_type)


def path_command(
    base_url: str = typer.Argument(help="Origin the ref belongs to."),
    ref: str = typer.Argument(help="Path relative to BASE_URL, or an absolute URL."),
    allow_distinct_ref: bool = typer.Option(
        False, "--allow-distinct-ref", help="Allow a REF outside BASE_URL."
    ),
    cache_dir: Optional[str] = typer.Option(None, "--cache-dir", help="Cache root directory."),
    cache_name: Optional[str] = typer.Option(
        None, "--cache-name", help="Sub-directory under the cache root."
    ),
    extension: Optional[str] = typer.Option(
        None, "--extension", help="File extension for stored files."
    ),
) -> None:
    """Print the file a cached REF is stored in.

    Exits with code 6 when nothing is stored for REF.
    """
    from scrapecache.config import resolve_options

    try:
        options = resolve_options(
            _cli_overrides(cache_dir=cache_dir, cache_name=cache_name, extension=extension)
        )
        path = create_scraper(base_url, options).path_for(ref, allow_distinct_ref)
    except ScrapeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if path is None:
        error(f"Nothing cached for {ref}")
        raise typer.Exit(code=EXIT_NOT_FOUND)
    print_data(str(path))
