"""Response-writing surface shared by the middleware, responder and host."""

from __future__ import annotations

from http import HTTPStatus
from typing import Callable, Mapping, Optional, Union

from websockets.datastructures import Headers
from websockets.http11 import Response

HeaderValue = Union[str, int]

_BODYLESS_STATUSES = {HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED}


class ResponseTooLargeError(Exception):
    """Raised when a body would exceed the response buffer limit."""


class AssetResponse:
    """Collects status, headers and body bytes for one request.

    Upstream collaborators may stage headers before the core runs; those
    staged values are visible through `get_header` and are transmitted along
    with whatever `write_head` adds.

    `max_body_bytes` bounds the buffered body; a declared or written length
    past it raises `ResponseTooLargeError` before the bytes are kept.
    `peer_gone` reports a disconnected client so writes stop early.
    """

    def __init__(
        self,
        headers: Optional[Headers] = None,
        *,
        max_body_bytes: Optional[int] = None,
        peer_gone: Optional[Callable[[], bool]] = None,
    ):
        self.status_code = HTTPStatus.OK.value
        self.headers = headers if headers is not None else Headers()
        self._chunks: list[bytes] = []
        self._body_size = 0
        self._max_body_bytes = max_body_bytes
        self._peer_gone = peer_gone
        self._finished = False
        self._closed = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def closed(self) -> bool:
        if self._closed:
            return True
        return self._peer_gone is not None and self._peer_gone()

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    def get_header(self, name: str) -> Optional[str]:
        values = self.headers.get_all(name)
        if not values:
            return None
        return ", ".join(values)

    def set_header(self, name: str, value: HeaderValue) -> None:
        if name in self.headers:
            del self.headers[name]
        self.headers[name] = str(value)

    def write_head(
        self,
        status_code: int,
        headers: Optional[Mapping[str, HeaderValue]] = None,
    ) -> None:
        headers = headers or {}
        declared = {name.lower(): value for name, value in headers.items()}.get(
            "content-length"
        )
        if declared is not None:
            self._check_size(int(declared))
        self.status_code = int(status_code)
        for name, value in headers.items():
            self.set_header(name, value)

    async def write(self, chunk: bytes) -> None:
        if self.closed:
            raise ConnectionResetError("Client disconnected during response")
        if self._finished:
            raise RuntimeError("Cannot write after the response has ended")
        self._check_size(self._body_size + len(chunk))
        self._chunks.append(bytes(chunk))
        self._body_size += len(chunk)

    def end(self) -> None:
        self._finished = True

    def close(self) -> None:
        """Mark the peer as gone; later writes fail."""
        self._closed = True

    def _check_size(self, size: int) -> None:
        if self._max_body_bytes is not None and size > self._max_body_bytes:
            raise ResponseTooLargeError(
                f"Response body of {size} bytes exceeds limit of {self._max_body_bytes}"
            )

    def to_http_response(self) -> Response:
        headers = Headers(self.headers)
        status = HTTPStatus(self.status_code)
        body = self.body
        if "Content-Length" not in headers and status not in _BODYLESS_STATUSES:
            headers["Content-Length"] = str(len(body))
        return Response(status.value, status.phrase, headers, body)
