"""
Tests for the recognition client against a local aiohttp server.
"""

import asyncio
import base64
import contextlib

import pytest
from aiohttp import web
from aiohttp import test_utils

from platescan.cv.capture_encoder import IMAGE_FIELD
from platescan.pipeline.recognition import (
    RecognitionClient,
    RecognitionRequestError,
    parse_recognition_response,
)

JPEG = b"\xff\xd8\xff\xe0fake-jpeg\xff\xd9"


@contextlib.asynccontextmanager
async def recognition_server(handler):
    """Serve ``handler`` on POST /recognize and yield (url, received bodies)."""
    received = []

    async def endpoint(request):
        received.append(await request.json())
        return await handler(request)

    app = web.Application()
    app.router.add_post("/recognize", endpoint)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/recognize")), received
    finally:
        await server.close()


def _reply(body, status=200):
    async def handler(request):
        return web.json_response(body, status=status)
    return handler


class TestParseResponse:

    def test_plate(self):
        assert parse_recognition_response({"plate": "ABC123"}) == "ABC123"

    def test_no_text(self):
        assert parse_recognition_response({"plate": None}) is None
        assert parse_recognition_response({"plate": ""}) is None
        assert parse_recognition_response({}) is None

    def test_not_an_object(self):
        with pytest.raises(RecognitionRequestError):
            parse_recognition_response(["ABC123"])


class TestRecognitionClient:

    @pytest.mark.asyncio
    async def test_recognize_sends_data_url(self):
        async with recognition_server(_reply({"plate": "ABC123"})) as (url, received):
            async with RecognitionClient(url, timeout=5) as client:
                assert await client.recognize(JPEG) == "ABC123"

        assert len(received) == 1
        image = received[0][IMAGE_FIELD]
        prefix = "data:image/jpeg;base64,"
        assert image.startswith(prefix)
        assert base64.b64decode(image[len(prefix):]) == JPEG

    @pytest.mark.asyncio
    async def test_missing_and_empty_text(self):
        for body in ({"plate": None}, {}, {"plate": "  "}):
            async with recognition_server(_reply(body)) as (url, _):
                async with RecognitionClient(url, timeout=5) as client:
                    assert await client.recognize(JPEG) is None

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        async with recognition_server(_reply({"error": "boom"}, status=500)) as (url, _):
            async with RecognitionClient(url, timeout=5) as client:
                with pytest.raises(RecognitionRequestError, match="HTTP 500"):
                    await client.recognize(JPEG)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        async def handler(request):
            return web.Response(text="<html>oops</html>", content_type="text/html")

        async with recognition_server(handler) as (url, _):
            async with RecognitionClient(url, timeout=5) as client:
                with pytest.raises(RecognitionRequestError):
                    await client.recognize(JPEG)

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async with RecognitionClient("http://127.0.0.1:1/recognize", timeout=2) as client:
            with pytest.raises(RecognitionRequestError):
                await client.recognize(JPEG)

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow(request):
            await asyncio.sleep(1.0)
            return web.json_response({"plate": "LATE"})

        async with recognition_server(slow) as (url, _):
            async with RecognitionClient(url, timeout=0.1) as client:
                with pytest.raises(RecognitionRequestError):
                    await client.recognize(JPEG)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        client = RecognitionClient("http://127.0.0.1:1/recognize")
        await client.close()
        await client.close()
