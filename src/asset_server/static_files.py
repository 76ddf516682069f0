"""Virtual-path resolution and content-type helpers for mapped assets."""

from __future__ import annotations

import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import Iterator, Optional

from .file_map import FileMap

_logger = logging.getLogger("asset_server.resolver")

# Compressed files are served as the archive type, never as the inner type.
_ENCODING_TYPES = {
    "gzip": "application/gzip",
    "br": "application/x-brotli",
    "bzip2": "application/x-bzip2",
    "xz": "application/x-xz",
    "compress": "application/x-compress",
}


@dataclass(frozen=True)
class ResolvedFile:
    """Absolute on-disk path plus the stat result taken while resolving it."""
    path: str
    stats: os.stat_result

    @property
    def size(self) -> int:
        return self.stats.st_size

    @property
    def mtime_ms(self) -> int:
        return self.stats.st_mtime_ns // 1_000_000


@dataclass(frozen=True)
class _Candidate:
    path: str
    stats: Optional[os.stat_result]

    @property
    def found(self) -> bool:
        return self.stats is not None


def lookup_content_type(name: str) -> str:
    """Return the media type for a file name, or an empty string when unknown."""
    mime_type, encoding = mimetypes.guess_type(name, strict=False)
    if encoding:
        return _ENCODING_TYPES.get(encoding, "")
    return mime_type or ""


def resolve_file(
    root: str,
    file_map: FileMap,
    path: str,
    logger: Optional[logging.Logger] = None,
) -> Optional[ResolvedFile]:
    """Resolve a request path to a file through exact then prefix mapping keys.

    An exact key is expected to exist on disk: its stat failure propagates as
    `OSError`. Prefix candidates that are missing are logged and skipped; only
    the first matching prefix key is ever consulted.
    """
    log = logger or _logger
    if path.endswith("/"):
        path = path[:-1]

    entries = file_map.get(path)
    if entries:
        filepath = _join(root, entries[0].src)
        return ResolvedFile(path=filepath, stats=os.stat(filepath))

    for key, entries in file_map.items():
        directory = key if key.endswith("/") else f"{key}/"
        if not path.startswith(directory):
            continue

        remainder = path[len(directory):]
        for candidate in _candidates(root, entries, remainder):
            if candidate.found:
                return ResolvedFile(path=candidate.path, stats=candidate.stats)
            log.debug("Mapped file not found: %s", candidate.path)
        return None

    return None


def _candidates(root: str, entries, remainder: str) -> Iterator[_Candidate]:
    for entry in entries:
        base = _join(root, entry.src)
        filepath = _join(base, remainder.lstrip("/"))
        if not _is_within(base, filepath):
            yield _Candidate(path=filepath, stats=None)
            continue
        try:
            stats = os.stat(filepath)
        except (FileNotFoundError, NotADirectoryError):
            stats = None
        yield _Candidate(path=filepath, stats=stats)


def _join(root: str, *parts: str) -> str:
    return os.path.abspath(os.path.join(root, *parts))


def _is_within(base: str, filepath: str) -> bool:
    return filepath == base or filepath.startswith(base.rstrip(os.sep) + os.sep)
