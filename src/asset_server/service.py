from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from http import HTTPStatus
from typing import Awaitable, Callable, Optional

import websockets
from websockets.asyncio.server import ServerConnection
from websockets.http11 import Request, Response

from .config import AssetServerConfig
from .file_map import FileMap
from .middleware import AssetMiddleware
from .response import AssetResponse, ResponseTooLargeError

FallbackHandler = Callable[[Request, AssetResponse], Awaitable[None]]


class AssetServer:
    """Threaded asyncio HTTP server for mapped static assets."""

    def __init__(
        self,
        config: AssetServerConfig,
        file_map: FileMap,
        logger: Optional[logging.Logger] = None,
        *,
        fallback: Optional[FallbackHandler] = None,
    ):
        self._config = config
        self._logger = logger or logging.getLogger("asset_server")
        self._middleware = AssetMiddleware(config.root, file_map, logger=self._logger)
        self._fallback = fallback
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_async: Optional[asyncio.Event] = None
        self._started = threading.Event()
        self._startup_error: Optional[Exception] = None
        self._bound_port: Optional[int] = None

    @property
    def host(self) -> str:
        return self._config.host

    @property
    def port(self) -> int:
        if self._bound_port is not None:
            return self._bound_port
        return self._config.port

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and self._startup_error is None
        )

    def start(self, timeout_seconds: float = 5.0) -> None:
        if self.is_running:
            self._logger.warning("Asset server is already running")
            return

        self._startup_error = None
        self._started.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            daemon=True,
            name="asset-server",
        )
        self._thread.start()

        if not self._started.wait(timeout_seconds):
            raise RuntimeError(
                f"Asset server did not start within {timeout_seconds:.1f}s"
            )

        if self._startup_error is not None:
            raise RuntimeError(f"Asset server startup failed: {self._startup_error}")

    def stop(self, timeout_seconds: float = 5.0) -> None:
        if self._thread is None:
            return

        if self._loop and self._stop_async:
            self._loop.call_soon_threadsafe(self._stop_async.set)

        self._thread.join(timeout=timeout_seconds)
        if self._thread.is_alive():
            self._logger.error(
                "Asset server thread did not stop within %.1fs",
                timeout_seconds,
            )

        self._thread = None
        self._loop = None
        self._stop_async = None
        self._bound_port = None

    def _run_loop(self) -> None:
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._stop_async = asyncio.Event()

        try:
            self._loop.run_until_complete(self._serve())
        except Exception as error:  # pragma: no cover - startup failures surface through start()
            self._startup_error = error
            self._logger.error("Asset server failed: %s", error, exc_info=True)
            self._started.set()
        finally:
            if self._loop is not None:
                pending = asyncio.all_tasks(self._loop)
                for task in pending:
                    task.cancel()
                with contextlib.suppress(Exception):
                    self._loop.run_until_complete(
                        asyncio.gather(*pending, return_exceptions=True)
                    )
                self._loop.close()

    async def _serve(self) -> None:
        async with websockets.serve(
            self._reject_websocket,
            host=self._config.host,
            port=self._config.port,
            process_request=self._process_request,
            logger=self._logger,
        ) as server:
            sockets = list(server.sockets)
            if sockets:
                self._bound_port = sockets[0].getsockname()[1]
            self._logger.info(
                "Asset server running at http://%s:%d (root: %s)",
                self._config.host,
                self.port,
                self._config.root,
            )
            self._started.set()
            await self._stop_async.wait()

    async def _reject_websocket(self, websocket: ServerConnection) -> None:
        await websocket.close(code=1008, reason="WebSocket connections are not served")

    async def _process_request(
        self,
        connection: ServerConnection,
        request: Request,
    ) -> Response:
        response = AssetResponse(
            max_body_bytes=self._config.max_response_bytes,
            peer_gone=connection.transport.is_closing,
        )

        next_handler = None
        if self._fallback is not None:
            fallback = self._fallback

            async def next_handler() -> None:
                await fallback(request, response)

        try:
            await self._middleware(request, response, next_handler)
        except asyncio.CancelledError:
            response.close()
            raise
        except ResponseTooLargeError as error:
            self._logger.warning("Refusing %s: %s", request.path, error)
            return self._error_response(HTTPStatus.INSUFFICIENT_STORAGE)
        except ConnectionResetError:
            self._logger.debug("Client went away while serving %s", request.path)
            return self._error_response(HTTPStatus.INTERNAL_SERVER_ERROR)
        except OSError as error:
            self._logger.error("Failed to serve %s: %s", request.path, error, exc_info=True)
            return self._error_response(HTTPStatus.INTERNAL_SERVER_ERROR)

        return response.to_http_response()

    @staticmethod
    def _error_response(status: HTTPStatus) -> Response:
        error = AssetResponse()
        error.write_head(status)
        error.end()
        return error.to_http_response()
