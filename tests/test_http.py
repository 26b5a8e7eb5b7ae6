# File: tests/test_http.py
import pytest
from aiohttp import web

from conftest import no_sleep, serve_app
from site_intel.errors import NetworkError
from site_intel.http import HttpClient


def make_app(counter):
    async def flaky(request):
        counter["flaky"] += 1
        if counter["flaky"] <= 2:
            raise web.HTTPServiceUnavailable()
        return web.Response(text="finally")

    async def always_down(request):
        counter["down"] += 1
        raise web.HTTPBadGateway()

    async def missing(request):
        counter["missing"] += 1
        raise web.HTTPNotFound()

    async def get_only(request):
        return web.Response(text="ok")

    async def user_agent(request):
        return web.Response(text=request.headers.get("User-Agent", ""))

    app = web.Application()
    app.router.add_get("/flaky", flaky)
    app.router.add_get("/down", always_down)
    app.router.add_get("/missing", missing)
    app.router.add_get("/get-only", get_only, allow_head=False)
    app.router.add_get("/ua", user_agent)
    return app


@pytest.fixture()
def counter():
    return {"flaky": 0, "down": 0, "missing": 0}


@pytest.mark.asyncio()
async def test_retries_retryable_status(unused_tcp_port, counter):
    async for base in serve_app(make_app(counter), unused_tcp_port):
        async with HttpClient(user_agent="TestAgent/1.0", retry_times=2, sleep=no_sleep) as client:
            assert await client.get_text(f"{base}/flaky") == "finally"
    assert counter["flaky"] == 3


@pytest.mark.asyncio()
async def test_retry_budget_exhausted(unused_tcp_port, counter):
    async for base in serve_app(make_app(counter), unused_tcp_port):
        async with HttpClient(user_agent="TestAgent/1.0", retry_times=1, sleep=no_sleep) as client:
            with pytest.raises(NetworkError) as info:
                await client.get_text(f"{base}/down")
    assert info.value.status == 502
    assert counter["down"] == 2


@pytest.mark.asyncio()
async def test_client_errors_are_not_retried(unused_tcp_port, counter):
    async for base in serve_app(make_app(counter), unused_tcp_port):
        async with HttpClient(user_agent="TestAgent/1.0", retry_times=3, sleep=no_sleep) as client:
            with pytest.raises(NetworkError) as info:
                await client.get_text(f"{base}/missing")
    assert info.value.status == 404
    assert counter["missing"] == 1


@pytest.mark.asyncio()
async def test_probe_falls_back_to_get(unused_tcp_port, counter):
    async for base in serve_app(make_app(counter), unused_tcp_port):
        async with HttpClient(user_agent="TestAgent/1.0", retry_times=0) as client:
            assert await client.probe(f"{base}/get-only")
            assert not await client.probe(f"{base}/missing")


@pytest.mark.asyncio()
async def test_sends_user_agent(unused_tcp_port, counter):
    async for base in serve_app(make_app(counter), unused_tcp_port):
        async with HttpClient(user_agent="TestAgent/1.0") as client:
            assert await client.get_text(f"{base}/ua") == "TestAgent/1.0"


@pytest.mark.asyncio()
async def test_connection_refused(unused_tcp_port):
    async with HttpClient(user_agent="TestAgent/1.0", retry_times=2, sleep=no_sleep) as client:
        with pytest.raises(NetworkError):
            await client.get_text(f"http://localhost:{unused_tcp_port}/")
        assert not await client.probe(f"http://localhost:{unused_tcp_port}/")


@pytest.mark.asyncio()
async def test_closed_client_refuses_requests():
    client = HttpClient(user_agent="TestAgent/1.0")
    with pytest.raises(RuntimeError):
        await client.get_text("http://localhost/")
