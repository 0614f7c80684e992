#!/usr/bin/env python3
"""
Tests for the server adapter and a live server driven over real sockets
"""
import logging

import aiohttp
import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry

from webparts import (
    CorsConfig, ServerConfig, WebServer, choose, fail, json,
    meth, metrics_endpoint, path, path_scanf, set_cookie, simple_cors, text
)
from webparts.core.context import Method
from webparts.core.response import APPLICATION_JSON
from webparts.core.server_utils import ServerConfigError
from webparts.features.metrics import ServerMetrics
from webparts.server import NotHandledError, run_app
from support import make_ctx

LOGGER = logging.getLogger("webparts.tests.server")


def build_app(registry):
    return choose([
        path("/") >> meth(Method.GET) >> text("hello"),
        path("/cookie") >> set_cookie("k", "v") >> text("ok"),
        path_scanf("/%d/%d", lambda a, b: text(str(a + b))),
        path_scanf("/json/%s", lambda s: json({"hello": s})),
        path("/cors") >> simple_cors(CorsConfig()) >> text("cors"),
        path("/metrics") >> metrics_endpoint(registry),
        path("/never") >> fail,
    ])


@pytest.mark.asyncio
async def test_run_app_hello():
    result = await run_app(text("hello"), make_ctx())
    assert int(result.status) == 200
    assert result.body.data == b"hello"


@pytest.mark.asyncio
async def test_run_app_falls_back_to_not_found():
    result = await run_app(path("/") >> text("hello"), make_ctx(target="/missing"))
    assert int(result.status) == 404
    assert result.body.data == b"Not found"
    assert result.headers.get("Content-Type") == "text/plain; charset=utf-8"


@pytest.mark.asyncio
async def test_run_app_serializes_cookies():
    result = await run_app(set_cookie("k", "v") >> text("ok"), make_ctx())
    assert result.headers.get_all("Set-Cookie") == ["k=v"]
    assert len(result.pending_cookies) == 0


def test_not_handled_error_is_a_runtime_error():
    assert issubclass(NotHandledError, RuntimeError)


@pytest.mark.parametrize("kwargs,message", [
    ({"port": "80"}, "Port must be an integer"),
    ({"port": 70000}, "Port number must be between 0 and 65535"),
    ({"port": -1}, "Port number must be between 0 and 65535"),
    ({"read_timeout": 0}, "Read timeout must be positive"),
    ({"max_requests": 0}, "max_requests must be at least 1"),
    ({"backlog": 0}, "Backlog must be at least 1"),
    ({"header_limit": 0}, "header_limit must be at least 1"),
    ({"body_limit": -1}, "body_limit must not be negative"),
])
def test_server_config_validation(kwargs, message):
    with pytest.raises(ValueError, match=message):
        ServerConfig(logger=LOGGER, **kwargs)


@pytest_asyncio.fixture
async def live_server():
    registry = CollectorRegistry()
    config = ServerConfig(host="127.0.0.1", port=0, logger=LOGGER)
    server = WebServer(build_app(registry), config, metrics=ServerMetrics(registry=registry))
    await server.start()
    try:
        yield f"http://127.0.0.1:{server.port}"
    finally:
        await server.shutdown(timeout=5.0)


@pytest.mark.asyncio
async def test_live_routes(live_server):
    async with aiohttp.ClientSession() as session:
        async with session.get(live_server + "/") as resp:
            assert resp.status == 200
            assert await resp.text() == "hello"
            assert "X-Request-ID" in resp.headers

        async with session.get(live_server + "/3/4") as resp:
            assert await resp.text() == "7"

        async with session.get(live_server + "/a/4") as resp:
            assert resp.status == 404
            assert await resp.text() == "Not found"

        async with session.get(live_server + "/never") as resp:
            assert resp.status == 404

        async with session.post(live_server + "/") as resp:
            assert resp.status == 404


@pytest.mark.asyncio
async def test_live_json_streamed(live_server):
    async with aiohttp.ClientSession() as session:
        async with session.get(live_server + "/json/world") as resp:
            assert resp.status == 200
            assert resp.headers["Content-Type"] == APPLICATION_JSON
            assert resp.headers["Transfer-Encoding"] == "chunked"
            assert await resp.json() == {"hello": "world"}


@pytest.mark.asyncio
async def test_live_cookie(live_server):
    async with aiohttp.ClientSession() as session:
        async with session.get(live_server + "/cookie") as resp:
            assert resp.headers.getall("Set-Cookie") == ["k=v"]
            assert resp.cookies["k"].value == "v"


@pytest.mark.asyncio
async def test_live_cors(live_server):
    async with aiohttp.ClientSession() as session:
        async with session.get(live_server + "/cors", headers={"Origin": "http://x"}) as resp:
            assert resp.headers["Access-Control-Allow-Origin"] == "http://x"
            assert resp.headers["Access-Control-Allow-Credentials"] == "true"


@pytest.mark.asyncio
async def test_live_metrics(live_server):
    async with aiohttp.ClientSession() as session:
        async with session.get(live_server + "/") as resp:
            await resp.read()
        async with session.get(live_server + "/metrics") as resp:
            body = await resp.text()
            assert resp.status == 200
            assert "webparts_requests_total" in body
            assert "webparts_request_duration_seconds_bucket" in body


@pytest.mark.asyncio
async def test_bind_failure_is_config_error(live_server):
    port = int(live_server.rsplit(":", 1)[1])
    server = WebServer(text("x"), ServerConfig(host="127.0.0.1", port=port, logger=LOGGER),
                       metrics=ServerMetrics(registry=CollectorRegistry()))
    with pytest.raises(ServerConfigError):
        await server.start()
