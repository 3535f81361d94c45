"""RPC tier fixtures: a local aiohttp server speaking Sui JSON-RPC and CoinGecko."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from aiohttp import web

from njangi_circles.sui.price import CoinGeckoPriceSource
from njangi_circles.sui.rpc import SuiRpcReader

PORT = 9199
BASE_URL = f"http://127.0.0.1:{PORT}"


class FakeFullnode:
    """Canned JSON-RPC responses keyed by method name.

    A handler may be a static result, a callable taking the params list, or
    an ``{"error": ...}`` dict returned as the JSON-RPC error member.
    """

    def __init__(self) -> None:
        self.results: dict[str, Any] = {}
        self.requests: list[dict[str, Any]] = []
        self.http_status = 200
        self.delay = 0.0
        self.price_body: Any = {"sui": {"usd": 1.25}}
        self.price_status = 200
        self.price_requests = 0
        self.base_url = BASE_URL

    async def handle_rpc(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.requests.append(body)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.http_status != 200:
            return web.Response(status=self.http_status, text="unavailable")

        handler = self.results.get(body["method"])
        if isinstance(handler, dict) and set(handler) == {"error"}:
            return web.json_response({"jsonrpc": "2.0", "id": body["id"], "error": handler["error"]})
        result = handler(body["params"]) if callable(handler) else handler
        return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": result})

    async def handle_price(self, request: web.Request) -> web.Response:
        self.price_requests += 1
        if self.price_status != 200:
            return web.Response(status=self.price_status)
        return web.json_response(self.price_body)

    def methods(self) -> list[str]:
        return [r["method"] for r in self.requests]


@pytest.fixture
async def fullnode():
    """Local HTTP server on 127.0.0.1:9199 serving JSON-RPC at / and prices at /simple/price."""
    node = FakeFullnode()
    app = web.Application()
    app.router.add_post("/", node.handle_rpc)
    app.router.add_get("/simple/price", node.handle_price)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", PORT)
    await site.start()
    yield node
    await runner.cleanup()


@pytest.fixture
async def rpc_reader(fullnode):
    reader = SuiRpcReader(BASE_URL, timeout=2.0)
    yield reader
    await reader.close()


@pytest.fixture
def price_source(fullnode):
    return CoinGeckoPriceSource(api_url=f"{BASE_URL}/simple/price", cache_ttl=60, timeout=2.0)
