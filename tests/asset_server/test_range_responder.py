import asyncio
import contextlib
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from websockets.datastructures import Headers
from websockets.http11 import Request

from asset_server.headers import build_static_headers
from asset_server.responder import ByteRange, iter_file_range, parse_range, send_file
from asset_server.response import AssetResponse, ResponseTooLargeError
from asset_server.static_files import ResolvedFile

_CONTENT = bytes(range(256)) * 4


def _request(**headers: str) -> Request:
    return Request("/file.bin", Headers({k.replace("_", "-"): v for k, v in headers.items()}))


class ParseRangeTests(unittest.TestCase):
    def test_explicit_bounds(self) -> None:
        self.assertEqual(ByteRange(5, 10), parse_range("bytes=5-10", 100))

    def test_open_end_defaults_to_last_byte(self) -> None:
        self.assertEqual(ByteRange(0, 99), parse_range("bytes=0-", 100))
        self.assertEqual(ByteRange(40, 99), parse_range("bytes=40-", 100))

    def test_zero_end_counts_as_missing(self) -> None:
        self.assertEqual(ByteRange(0, 99), parse_range("bytes=0-0", 100))

    def test_suffix_form_is_read_as_end_bound(self) -> None:
        self.assertEqual(ByteRange(0, 5), parse_range("bytes=-5", 100))

    def test_non_numeric_bounds_fall_back(self) -> None:
        self.assertEqual(ByteRange(0, 99), parse_range("bytes=abc-xyz", 100))
        self.assertEqual(ByteRange(0, 99), parse_range("garbage", 100))

    def test_trailing_junk_after_digits_is_ignored(self) -> None:
        self.assertEqual(ByteRange(5, 10), parse_range("bytes=5-10, 20-30", 100))

    def test_satisfiable(self) -> None:
        self.assertTrue(ByteRange(0, 99).satisfiable(100))
        self.assertFalse(ByteRange(100, 99).satisfiable(100))
        self.assertFalse(ByteRange(0, 100).satisfiable(100))
        self.assertFalse(ByteRange(10, 5).satisfiable(100))


class SendFileTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self._temp_dir.cleanup)
        path = Path(self._temp_dir.name) / "file.bin"
        path.write_bytes(_CONTENT)
        self.resolved = ResolvedFile(path=str(path), stats=os.stat(path))
        self.etag = build_static_headers(str(path), self.resolved.stats).etag

    async def _send(self, request: Request, response: AssetResponse | None = None) -> AssetResponse:
        response = response or AssetResponse()
        await send_file(request, response, self.resolved)
        return response

    async def test_full_response_streams_whole_file(self) -> None:
        response = await self._send(_request())

        self.assertEqual(200, response.status_code)
        self.assertEqual(_CONTENT, response.body)
        self.assertEqual(str(len(_CONTENT)), response.get_header("Content-Length"))
        self.assertEqual(self.etag, response.get_header("ETag"))
        self.assertEqual("no-cache", response.get_header("Cache-Control"))
        self.assertIsNone(response.get_header("Accept-Ranges"))
        self.assertTrue(response.finished)

    async def test_matching_validator_returns_not_modified(self) -> None:
        response = await self._send(_request(If_None_Match=self.etag))

        self.assertEqual(304, response.status_code)
        self.assertEqual(b"", response.body)
        self.assertIsNone(response.get_header("ETag"))

    async def test_not_modified_takes_precedence_over_range(self) -> None:
        response = await self._send(
            _request(If_None_Match=self.etag, Range=f"bytes={len(_CONTENT) + 5}-")
        )
        self.assertEqual(304, response.status_code)

    async def test_validator_comparison_is_exact(self) -> None:
        response = await self._send(_request(If_None_Match=self.etag.replace("W/", "")))
        self.assertEqual(200, response.status_code)

    async def test_open_range_from_zero_returns_whole_file_as_partial(self) -> None:
        size = len(_CONTENT)
        response = await self._send(_request(Range="bytes=0-"))

        self.assertEqual(206, response.status_code)
        self.assertEqual(f"bytes 0-{size - 1}/{size}", response.get_header("Content-Range"))
        self.assertEqual(str(size), response.get_header("Content-Length"))
        self.assertEqual("bytes", response.get_header("Accept-Ranges"))
        self.assertEqual(_CONTENT, response.body)

    async def test_partial_range_is_byte_exact(self) -> None:
        response = await self._send(_request(Range="bytes=10-19"))

        self.assertEqual(206, response.status_code)
        self.assertEqual(f"bytes 10-19/{len(_CONTENT)}", response.get_header("Content-Range"))
        self.assertEqual("10", response.get_header("Content-Length"))
        self.assertEqual(_CONTENT[10:20], response.body)

    async def test_range_past_end_is_not_satisfiable(self) -> None:
        size = len(_CONTENT)
        response = await self._send(_request(Range=f"bytes={size}-{size + 10}"))

        self.assertEqual(416, response.status_code)
        self.assertEqual(f"bytes */{size}", response.get_header("Content-Range"))
        self.assertEqual(b"", response.body)
        self.assertIsNone(response.get_header("ETag"))
        self.assertIsNone(response.get_header("Content-Length"))

    async def test_inverted_range_is_not_satisfiable(self) -> None:
        response = await self._send(_request(Range="bytes=20-10"))
        self.assertEqual(416, response.status_code)

    async def test_staged_headers_survive(self) -> None:
        response = AssetResponse(
            Headers({"Cache-Control": "max-age=600", "Content-Type": "application/x-custom"})
        )

        await self._send(_request(Range="bytes=1-2"), response)

        self.assertEqual("max-age=600", response.get_header("Cache-Control"))
        self.assertEqual("application/x-custom", response.get_header("Content-Type"))
        self.assertEqual("2", response.get_header("Content-Length"))

    async def test_empty_file_with_range_is_not_satisfiable(self) -> None:
        empty = Path(self._temp_dir.name) / "empty.txt"
        empty.write_bytes(b"")
        resolved = ResolvedFile(path=str(empty), stats=os.stat(empty))
        response = AssetResponse()

        await send_file(_request(Range="bytes=0-"), response, resolved)

        self.assertEqual(416, response.status_code)
        self.assertEqual("bytes */0", response.get_header("Content-Range"))

    async def test_disconnect_stops_streaming(self) -> None:
        response = AssetResponse()
        response.close()

        with self.assertRaises(ConnectionResetError):
            await send_file(_request(), response, self.resolved)

        self.assertFalse(response.finished)
        self.assertEqual(b"", response.body)


    async def test_file_over_buffer_limit_is_refused_before_reading(self) -> None:
        response = AssetResponse(max_body_bytes=len(_CONTENT) - 1)

        with patch("asset_server.responder.iter_file_range") as iter_range:
            with self.assertRaises(ResponseTooLargeError):
                await send_file(_request(), response, self.resolved)

        iter_range.assert_not_called()
        self.assertEqual(b"", response.body)

    async def test_range_within_buffer_limit_is_served(self) -> None:
        response = AssetResponse(max_body_bytes=2)

        await send_file(_request(Range="bytes=1-2"), response, self.resolved)

        self.assertEqual(206, response.status_code)
        self.assertEqual(_CONTENT[1:3], response.body)


class IterFileRangeTests(unittest.IsolatedAsyncioTestCase):
    async def test_chunks_cover_requested_span(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "data.bin"
            path.write_bytes(_CONTENT)

            chunks = [
                chunk
                async for chunk in iter_file_range(str(path), 3, 700, chunk_size=128)
            ]

        self.assertEqual(_CONTENT[3:701], b"".join(chunks))
        self.assertTrue(all(len(chunk) <= 128 for chunk in chunks))

    async def test_cancelled_stream_closes_file(self) -> None:
        opened = []

        def tracking_open(*args, **kwargs):
            handle = open(*args, **kwargs)
            opened.append(handle)
            return handle

        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "data.bin"
            path.write_bytes(_CONTENT)
            started = asyncio.Event()

            async def consume() -> None:
                stream = iter_file_range(str(path), 0, len(_CONTENT) - 1, chunk_size=1)
                async with contextlib.aclosing(stream) as chunks:
                    async for _chunk in chunks:
                        started.set()
                        await asyncio.sleep(1)

            with patch("asset_server.responder.open", tracking_open, create=True):
                task = asyncio.create_task(consume())
                await started.wait()
                task.cancel()
                with self.assertRaises(asyncio.CancelledError):
                    await task

        self.assertEqual(1, len(opened))
        self.assertTrue(opened[0].closed)


if __name__ == "__main__":
    unittest.main()
