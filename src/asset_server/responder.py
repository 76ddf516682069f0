"""Conditional and byte-range delivery of a resolved file."""

from __future__ import annotations

import asyncio
import contextlib
import re
from dataclasses import dataclass
from http import HTTPStatus
from typing import AsyncIterator, Optional

from websockets.http11 import Request

from .headers import build_static_headers, merge_headers
from .response import AssetResponse
from .static_files import ResolvedFile

CHUNK_SIZE = 64 * 1024

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def satisfiable(self, size: int) -> bool:
        return self.start < size and self.end < size and self.start <= self.end


def parse_range(header: str, size: int) -> ByteRange:
    """Parse a single `bytes=<start>-<end>` value.

    Missing, non-numeric and zero bounds all fall back to the defaults:
    0 for the start and `size - 1` for the end.
    """
    fields = header.replace("bytes=", "", 1).split("-")
    start = _leading_int(fields[0])
    end = _leading_int(fields[1]) if len(fields) > 1 else None
    return ByteRange(start=start or 0, end=end or size - 1)


def _leading_int(text: str) -> Optional[int]:
    match = _LEADING_INT.match(text)
    if match is None:
        return None
    return int(match.group(1))


async def send_file(
    request: Request,
    response: AssetResponse,
    resolved: ResolvedFile,
) -> None:
    """Answer with 304, 416, 206 or 200 for a resolved file."""
    static_headers = build_static_headers(resolved.path, resolved.stats)

    if _request_header(request, "If-None-Match") == static_headers.etag:
        response.write_head(HTTPStatus.NOT_MODIFIED)
        response.end()
        return

    size = resolved.size
    headers = merge_headers(static_headers, response)
    start, end = 0, size - 1
    status = HTTPStatus.OK

    range_header = _request_header(request, "Range")
    if range_header:
        status = HTTPStatus.PARTIAL_CONTENT
        byte_range = parse_range(range_header, size)
        if not byte_range.satisfiable(size):
            response.set_header("Content-Range", f"bytes */{size}")
            response.write_head(HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE)
            response.end()
            return

        start, end = byte_range.start, byte_range.end
        headers["Content-Range"] = f"bytes {start}-{end}/{size}"
        headers["Content-Length"] = str(byte_range.length)
        headers["Accept-Ranges"] = "bytes"

    response.write_head(status, headers)
    async with contextlib.aclosing(iter_file_range(resolved.path, start, end)) as chunks:
        async for chunk in chunks:
            await response.write(chunk)
    response.end()


def _request_header(request: Request, name: str) -> Optional[str]:
    values = request.headers.get_all(name)
    if not values:
        return None
    return ", ".join(values)


async def iter_file_range(
    path: str,
    start: int,
    end: int,
    chunk_size: int = CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Yield bytes `[start, end]` of a file, reading off the event loop."""
    remaining = end - start + 1
    fh = await asyncio.to_thread(open, path, "rb")
    try:
        if start:
            await asyncio.to_thread(fh.seek, start)
        while remaining > 0:
            chunk = await asyncio.to_thread(fh.read, min(chunk_size, remaining))
            if not chunk:
                raise EOFError(f"File shrank while streaming: {path}")
            remaining -= len(chunk)
            yield chunk
    finally:
        fh.close()
