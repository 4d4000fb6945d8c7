"""AiohttpTransport against a local aiohttp server."""
import asyncio
import socket

import orjson
import pytest
from aiohttp import test_utils, web

from core.errors import GatewayConnectionError
from core.types import HttpMethod, RequestDescriptor
from gateway.transport import AiohttpTransport


async def _echo_query(request: web.Request) -> web.Response:
    # raw request target, before the server decodes anything
    return web.Response(text=request.raw_path.split("?", 1)[1])


async def _echo_body(request: web.Request) -> web.Response:
    body = await request.text()
    return web.json_response({
        "body": body,
        "key": request.headers.get("X-MBX-APIKEY"),
        "contentType": request.headers.get("Content-Type"),
    })


async def _unavailable(request: web.Request) -> web.Response:
    return web.Response(status=503, text='{"code":-1001,"msg":"Internal error"}',
                        content_type="application/json")


async def _slow(request: web.Request) -> web.Response:
    await asyncio.sleep(1)
    return web.Response(text="late")


@pytest.fixture
async def server():
    app = web.Application()
    app.router.add_get("/query", _echo_query)
    app.router.add_post("/echo", _echo_body)
    app.router.add_get("/down", _unavailable)
    app.router.add_get("/slow", _slow)
    srv = test_utils.TestServer(app)
    await srv.start_server()
    yield srv
    await srv.close()


def _base_url(srv) -> str:
    return f"http://{srv.host}:{srv.port}"


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestAiohttpTransport:
    async def test_encoded_query_reaches_server_unchanged(self, server):
        transport = AiohttpTransport(_base_url(server))
        req = RequestDescriptor(HttpMethod.GET, "/query",
                                query={"txId": "Off-chain transfer 1", "timestamp": "1"})
        try:
            resp = await transport.send(req)
        finally:
            await transport.close()
        assert resp.status == 200
        assert resp.body == "txId=Off-chain+transfer+1&timestamp=1"

    async def test_body_and_headers_sent_as_given(self, server):
        transport = AiohttpTransport(_base_url(server) + "/")
        req = RequestDescriptor(HttpMethod.POST, "/echo", body='{"coin":"USDT","amount":"0.1"}',
                                headers={"X-MBX-APIKEY": "test-key", "Content-Type": "application/json"})
        try:
            resp = await transport.send(req)
        finally:
            await transport.close()
        data = orjson.loads(resp.body)
        assert data["body"] == '{"coin":"USDT","amount":"0.1"}'
        assert data["key"] == "test-key"
        assert data["contentType"] == "application/json"

    async def test_error_status_returned_not_raised(self, server):
        transport = AiohttpTransport(_base_url(server))
        try:
            resp = await transport.send(RequestDescriptor(HttpMethod.GET, "/down"))
        finally:
            await transport.close()
        assert resp.status == 503
        assert not resp.ok
        assert resp.body == '{"code":-1001,"msg":"Internal error"}'
        assert resp.headers["Content-Type"].startswith("application/json")

    async def test_connection_refused(self):
        transport = AiohttpTransport(f"http://127.0.0.1:{_free_port()}")
        try:
            with pytest.raises(GatewayConnectionError) as ei:
                await transport.send(RequestDescriptor(HttpMethod.GET, "/x", query={"a": "1"}))
        finally:
            await transport.close()
        assert ei.value.endpoint == "GET /x"
        assert "Connection failed" in str(ei.value)

    async def test_timeout_raises_connection_error(self, server):
        transport = AiohttpTransport(_base_url(server), timeout_s=0.1)
        try:
            with pytest.raises(GatewayConnectionError) as ei:
                await transport.send(RequestDescriptor(HttpMethod.GET, "/slow"))
        finally:
            await transport.close()
        assert ei.value.endpoint == "GET /slow"

    async def test_session_reopened_after_close(self, server):
        transport = AiohttpTransport(_base_url(server))
        req = RequestDescriptor(HttpMethod.GET, "/query", query={"a": "1"})
        try:
            assert (await transport.send(req)).body == "a=1"
            await transport.close()
            assert (await transport.send(req)).body == "a=1"
        finally:
            await transport.close()
