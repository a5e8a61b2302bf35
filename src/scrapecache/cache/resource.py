"""Filesystem resources backing the local cache.

:class:`LocalResource` maps a canonical ref onto a file path that mirrors
the ref's path segments and performs whole-file reads and writes there::

    origin        https://httpbin.org
    root / name   __cache / test
    extension     json

    https://httpbin.org/path/to/page  ->  __cache/test/path/to/page.json

Refs outside the origin (fetched with ``allow_distinct_ref``) are stored
under their host instead, e.g. ``__cache/test/example.com/page.json``.
A ref whose path is also the parent of another stored ref lives in that
directory's ``index`` file, so ``users`` and ``users/1`` can both be
stored without an extension.

Writes use a temp-file-then-rename strategy so a crash never leaves a
half-written artifact behind; the last write always wins.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from scrapecache.exceptions import StoreError, ValidationError
from scrapecache.models import StoredPaths
from scrapecache.reconcile import is_absolute, remove_slashes

logger = logging.getLogger(__name__)

_INDEX_FILENAME = "index"


class LocalResource:
    """Path derivation and raw text I/O for cached refs.

    Args:
        origin: Base URL whose refs are stored relative to the root.
        root_directory: Cache root, e.g. ``"__cache"``.
        name: Optional sub-directory under the root.
        extension: Optional file extension (without the dot).
    """

    def __init__(
        self,
        origin: str,
        root_directory: str = "__cache",
        name: Optional[str] = None,
        extension: Optional[str] = None,
    ) -> None:
        self.origin = remove_slashes(origin) or ""
        self.root_directory = root_directory.rstrip("/") or "/"
        self.name = remove_slashes(name)
        self.extension = extension

    # ------------------------------------------------------------------ #
    # Paths
    # ------------------------------------------------------------------ #

    @property
    def base_directory(self) -> Path:
        """``root_directory[/name]``; every stored file lives below it."""
        directory = Path(self.root_directory)
        if self.name:
            directory = directory / self.name
        return directory

    def derive_paths(self, ref: str) -> StoredPaths:
        """Derive the storage location for *ref* without touching the filesystem.

        ``.`` and ``..`` segments are resolved the way a URL path resolves
        them, never climbing above the origin (or the host of a foreign ref).

        Raises:
            ValidationError: If the derived path falls outside
                ``root_directory``.
        """
        ref = remove_slashes(ref) or ""

        host: list[str] = []
        if ref.startswith(self.origin):
            relative = ref[len(self.origin):]
        elif is_absolute(ref):
            # foreign ref: keep host and path, drop the scheme
            authority, _, relative = ref.split("://", 1)[1].partition("/")
            host = [authority] if authority not in ("", ".", "..") else []
        else:
            relative = ref

        parts = host + _normalize_segments(relative.split("/"))
        if not parts:
            parts = [_INDEX_FILENAME]

        filename = parts[-1]
        if self.extension:
            filename += "." + self.extension

        base = self.base_directory
        directory = base.joinpath(*parts[:-1])
        path = directory / filename
        if not _is_within(path, Path(self.root_directory)):
            raise ValidationError(f"Ref {ref!r} resolves outside the cache root {self.root_directory}")

        return StoredPaths(directory=directory, filename=filename, path=path)

    def locate(self, ref: str) -> StoredPaths:
        """Like :meth:`derive_paths`, but a path that is already a directory
        (because a child ref was stored first) resolves to its ``index`` file.
        """
        paths = self.derive_paths(ref)
        if paths.path.is_dir():
            return self._index_paths(paths.path)
        return paths

    def get_paths(self, ref: str) -> StoredPaths:
        """Return the stored paths if the file exists, otherwise all ``None``."""
        paths = self.locate(ref)
        if paths.path.is_file():
            return paths
        return StoredPaths(directory=None, filename=None, path=None)

    def _index_paths(self, directory: Path) -> StoredPaths:
        filename = _INDEX_FILENAME
        if self.extension:
            filename += "." + self.extension
        return StoredPaths(directory=directory, filename=filename, path=directory / filename)

    def _promote_file_ancestors(self, directory: Path) -> None:
        """Move any regular file standing where *directory* needs a
        sub-directory into that sub-directory's ``index`` file.
        """
        base = self.base_directory
        current = base
        for part in directory.relative_to(base).parts:
            current = current / part
            if current.is_file():
                logger.debug("Moving %s to its index file", current)
                holding = current.with_name(f".{current.name}.promote")
                os.replace(current, holding)
                current.mkdir()
                os.replace(holding, self._index_paths(current).path)

    # ------------------------------------------------------------------ #
    # I/O
    # ------------------------------------------------------------------ #

    def read(self, ref: str) -> Optional[str]:
        """Read the stored text for *ref*.

        Returns:
            The file contents, or ``None`` if no regular file is stored.

        Raises:
            StoreError: On any I/O failure other than a missing file.
        """
        path = self.locate(ref).path
        try:
            return path.read_text(encoding="utf-8")
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
            return None
        except OSError as exc:
            raise StoreError(f"Cannot read {path}: {exc}") from exc

    def write(self, ref: str, data: str) -> Path:
        """Write *data* for *ref*, replacing any previous content.

        Parent directories are created as needed. A file previously stored
        where a parent directory is needed becomes that directory's
        ``index`` file.

        Returns:
            The path written to.

        Raises:
            TypeError: If *data* is not a ``str``.
            StoreError: If the file cannot be written.
        """
        paths = self.locate(ref)
        if not isinstance(data, str):
            raise TypeError(
                f"Unable to write {paths.filename}: value must be of type 'str' "
                f"but is instead '{type(data).__name__}'"
            )
        try:
            self._promote_file_ancestors(paths.directory)
            _atomic_write(paths.path, data)
        except OSError as exc:
            raise StoreError(f"Cannot write {paths.path}: {exc}") from exc
        return paths.path

    def stat(self, ref: str) -> Optional[tuple[datetime, datetime]]:
        """Return ``(created_at, modified_at)`` in UTC, or ``None`` if no
        regular file is stored for *ref*."""
        path = self.locate(ref).path
        try:
            st = path.stat()
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as exc:
            raise StoreError(f"Cannot stat {path}: {exc}") from exc
        if not stat.S_ISREG(st.st_mode):
            return None
        created = getattr(st, "st_birthtime", st.st_ctime)
        return (
            datetime.fromtimestamp(created, tz=timezone.utc),
            datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def _normalize_segments(segments: list[str]) -> list[str]:
    """Drop empty and ``.`` segments and apply ``..`` to the preceding one."""
    parts: list[str] = []
    for segment in segments:
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts:
                parts.pop()
            continue
        parts.append(segment)
    return parts


def _is_within(path: Path, base: Path) -> bool:
    normalized = Path(os.path.normpath(os.path.abspath(path)))
    return normalized.is_relative_to(os.path.normpath(os.path.abspath(base)))
