"""Configuration with XDG paths and precedence resolution.

scrapecache has no global config file; a :class:`~scrapecache.models.ScrapeOptions`
is assembled from, low to high precedence:

1. Model defaults.
2. Project config -- ``./scrapecache.json`` in the working directory.
3. Environment variables (``SCRAPECACHE_*``, see :data:`ENV_VARS`).
4. CLI overrides passed to :func:`resolve_options`.

Nested sections (``cache``, ``retry``, ``throttle``) are merged key by key,
so a project file can set ``cache.name`` while the environment sets
``cache.root_directory``.

:func:`get_data_dir` resolves the XDG data directory used for crash logs.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Callable, Optional

import pydantic

from scrapecache.exceptions import ConfigError
from scrapecache.models import ScrapeOptions, format_validation_error

_APP_NAME = "scrapecache"
_PROJECT_CONFIG_FILENAME = "scrapecache.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on platforms following the XDG Base Directory spec (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/scrapecache/`` (default
    ``~/.local/share/scrapecache/``). Elsewhere: ``~/.scrapecache/logs/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load ``./scrapecache.json``.

    The file holds any subset of the :class:`ScrapeOptions` fields, e.g.::

        {"content_type": "html", "cache": {"name": "wiki"}, "throttle": {"limit": 2}}

    Returns:
        The parsed object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file is not valid JSON or not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Environment ---


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _env_disable(name: str, value: str) -> bool:
    return value.strip().lower() not in _TRUE_VALUES


#: Environment variable -> (option path, converter).
ENV_VARS: dict[str, tuple[tuple[str, ...], Callable[[str, str], Any]]] = {
    "SCRAPECACHE_CONTENT_TYPE": (("content_type",), lambda name, value: value.lower()),
    "SCRAPECACHE_CACHE_DIR": (("cache", "root_directory"), lambda name, value: value),
    "SCRAPECACHE_CACHE_NAME": (("cache", "name"), lambda name, value: value),
    "SCRAPECACHE_NO_CACHE": (("cache", "enabled"), _env_disable),
    "SCRAPECACHE_RETRIES": (("retry", "max_attempts"), _env_int),
    "SCRAPECACHE_THROTTLE_LIMIT": (("throttle", "limit"), _env_int),
    "SCRAPECACHE_THROTTLE_INTERVAL": (("throttle", "interval_ms"), _env_int),
}


def load_env_options() -> dict[str, Any]:
    """Collect option values from ``SCRAPECACHE_*`` environment variables.

    Empty variables are ignored.

    Raises:
        ConfigError: If a numeric variable does not hold an integer.
    """
    options: dict[str, Any] = {}
    for name, (path, convert) in ENV_VARS.items():
        value = os.environ.get(name, "")
        if not value:
            continue
        section = options
        for key in path[:-1]:
            section = section.setdefault(key, {})
        section[path[-1]] = convert(name, value)
    return options


# --- Precedence resolution ---


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge *overrides* into a copy of *base*, recursing into nested dicts."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_options(cli_overrides: Optional[dict[str, Any]] = None) -> ScrapeOptions:
    """Resolve :class:`ScrapeOptions` through the full precedence chain.

    Precedence (high to low):
        1. CLI overrides (*cli_overrides*, same shape as ``ScrapeOptions``)
        2. Environment variables (``SCRAPECACHE_*``)
        3. Project config (``./scrapecache.json``)
        4. Defaults

    Raises:
        ConfigError: If a source is unreadable or the merged options are
            invalid.
    """
    merged: dict[str, Any] = {}
    project = load_project_config()
    if project is not None:
        merged = _merge(merged, project)
    merged = _merge(merged, load_env_options())
    if cli_overrides:
        merged = _merge(merged, cli_overrides)

    try:
        return ScrapeOptions.model_validate(merged)
    except pydantic.ValidationError as exc:
        raise ConfigError(f"Invalid options: {format_validation_error(exc)}") from exc
