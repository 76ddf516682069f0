"""Cache and identity headers for resolved files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from email.utils import formatdate

from .response import AssetResponse
from .static_files import lookup_content_type

HTML_CONTENT_TYPE = "text/html"
CACHE_CONTROL = "no-cache"


@dataclass(frozen=True)
class StaticHeaders:
    """Headers derived from a file's name and stat result alone."""
    content_length: int
    content_type: str
    last_modified: str
    etag: str
    cache_control: str = CACHE_CONTROL

    def as_dict(self) -> dict[str, str]:
        return {
            "Content-Length": str(self.content_length),
            "Content-Type": self.content_type,
            "Last-Modified": self.last_modified,
            "ETag": self.etag,
            "Cache-Control": self.cache_control,
        }


def make_etag(size: int, mtime_ms: int) -> str:
    return f'W/"{size}-{mtime_ms}"'


def build_static_headers(name: str, stats: os.stat_result) -> StaticHeaders:
    content_type = lookup_content_type(name)
    if content_type == HTML_CONTENT_TYPE:
        content_type += ";charset=utf-8"

    mtime_ms = stats.st_mtime_ns // 1_000_000
    return StaticHeaders(
        content_length=stats.st_size,
        content_type=content_type,
        last_modified=formatdate(mtime_ms / 1000, usegmt=True),
        etag=make_etag(stats.st_size, mtime_ms),
    )


def merge_headers(static: StaticHeaders, response: AssetResponse) -> dict[str, str]:
    """Overlay headers already staged on the response onto the static set.

    A staged Content-Type is applied once more after the general overlay so it
    always wins over the computed type.
    """
    headers = static.as_dict()
    for name in headers:
        staged = response.get_header(name)
        if staged:
            headers[name] = staged

    content_type = response.get_header("Content-Type")
    if content_type:
        headers["Content-Type"] = content_type

    return headers
