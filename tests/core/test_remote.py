"""Tests for workpro.core.remote: HttpDataSource over httpx.MockTransport."""

import httpx
import pytest

from workpro.core.errors import (
    NetworkError,
    ParseError,
    SourceError,
    SourceNotFoundError,
    TimeoutError,
)
from workpro.core.remote import HttpDataSource, RemoteDataSource

BASE_URL = "http://api.test/api"


def make_source(handler, **kwargs) -> HttpDataSource:
    return HttpDataSource(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


class TestRequests:
    def test_protocol(self):
        assert isinstance(make_source(lambda r: httpx.Response(200)), RemoteDataSource)

    @pytest.mark.asyncio
    async def test_get_unwraps_envelope(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"data": [{"id": "wo-1"}], "error": None})

        source = make_source(handler, token="secret")
        result = await source.get("/work-orders", {"status": "all", "page": 2, "q": ""})
        await source.aclose()

        assert result.unwrap() == [{"id": "wo-1"}]
        assert seen["path"] == "/api/work-orders"
        assert seen["params"] == {"page": "2"}
        assert seen["auth"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_body_without_envelope(self):
        source = make_source(lambda r: httpx.Response(200, json=[1, 2, 3]))
        result = await source.get("assets")
        await source.aclose()
        assert result.unwrap() == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_patch_sends_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = request.content
            return httpx.Response(200, json={"data": {"id": "a-1", "name": "Pump 2"}})

        source = make_source(handler)
        result = await source.patch("assets/a-1", {"name": "Pump 2"})
        await source.aclose()

        assert seen["method"] == "PATCH"
        assert b'"name"' in seen["body"]
        assert result.unwrap()["name"] == "Pump 2"

    @pytest.mark.asyncio
    async def test_delete_no_content(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            return httpx.Response(204)

        source = make_source(handler)
        result = await source.delete("assets/a-1")
        await source.aclose()

        assert seen["method"] == "DELETE"
        assert result.is_ok()
        assert result.unwrap() is None


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_envelope_error(self):
        body = {"data": None, "error": {"code": "FORBIDDEN", "message": "Not allowed"}}
        source = make_source(lambda r: httpx.Response(200, json=body))
        result = await source.get("assets")
        await source.aclose()

        assert result.is_err()
        assert type(result.error) is SourceError
        assert result.error.message == "Not allowed"

    @pytest.mark.asyncio
    async def test_not_found(self):
        body = {"data": None, "error": {"message": "Asset not found"}}
        source = make_source(lambda r: httpx.Response(404, json=body))
        result = await source.get("assets/missing")
        await source.aclose()

        assert isinstance(result.error, SourceNotFoundError)
        assert result.error.context.http_status == 404
        assert result.error.context.url.endswith("/api/assets/missing")

    @pytest.mark.asyncio
    async def test_server_error_without_envelope(self):
        source = make_source(lambda r: httpx.Response(500, json={"detail": "oops"}))
        result = await source.get("assets")
        await source.aclose()

        assert isinstance(result.error, SourceError)
        assert result.error.message == "Request failed with status 500"
        assert result.error.retryable is False

    @pytest.mark.asyncio
    async def test_empty_error_response(self):
        source = make_source(lambda r: httpx.Response(503))
        result = await source.get("assets")
        await source.aclose()

        assert isinstance(result.error, SourceError)
        assert result.error.context.http_status == 503

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        source = make_source(lambda r: httpx.Response(200, text="<html>maintenance</html>"))
        result = await source.get("assets")
        await source.aclose()

        assert isinstance(result.error, ParseError)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        source = make_source(handler)
        result = await source.get("assets")
        await source.aclose()

        assert isinstance(result.error, TimeoutError)
        assert result.error.retryable is True
        assert result.error.context.resource == "assets"

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        source = make_source(handler)
        result = await source.get("work-orders")
        await source.aclose()

        assert isinstance(result.error, NetworkError)
        assert result.error.message == "Network request failed"
        assert isinstance(result.error.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_undecodable_content_encoding(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"Content-Encoding": "gzip"},
                stream=httpx.ByteStream(b"not gzip at all"),
            )

        source = make_source(handler)
        result = await source.get("work-orders")
        await source.aclose()

        assert isinstance(result.error, NetworkError)
        assert isinstance(result.error.cause, httpx.DecodingError)
        assert result.error.context.resource == "work-orders"
