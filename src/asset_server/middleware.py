"""Request middleware that serves mapped files or defers to a fallback."""

from __future__ import annotations

import logging
import re
from http import HTTPStatus
from typing import Awaitable, Callable, Optional
from urllib.parse import unquote, urlsplit

from websockets.http11 import Request

from .file_map import FileMap
from .responder import send_file
from .response import AssetResponse
from .static_files import resolve_file

NextHandler = Callable[[], Awaitable[None]]

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def decode_request_path(path: str) -> str:
    """Percent-decode a path, returning it unchanged when the escapes are malformed."""
    if "%" not in path:
        return path
    if _MALFORMED_ESCAPE.search(path):
        return path
    try:
        return unquote(path, errors="strict")
    except UnicodeDecodeError:
        return path


class AssetMiddleware:
    """Serves files from a virtual mapping rooted at a filesystem directory."""

    def __init__(
        self,
        root: str,
        file_map: FileMap,
        logger: Optional[logging.Logger] = None,
    ):
        self._root = root
        self._file_map = file_map
        self._logger = logger or logging.getLogger("asset_server")

    async def __call__(
        self,
        request: Request,
        response: AssetResponse,
        next: Optional[NextHandler] = None,
    ) -> None:
        if not request.path:
            response.end()
            return

        path = decode_request_path(urlsplit(request.path).path)
        resolved = resolve_file(
            self._root,
            self._file_map,
            path,
            logger=self._logger.getChild("resolver"),
        )
        if resolved is None:
            await self._not_found(response, next)
            return

        await send_file(request, response, resolved)

    @staticmethod
    async def _not_found(response: AssetResponse, next: Optional[NextHandler]) -> None:
        if next is not None:
            await next()
            return
        response.write_head(HTTPStatus.NOT_FOUND)
        response.end()
