from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from httpsvr.config import ServerConfig, get_settings
from httpsvr.server import Server


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("HTTPSVR_"):
            monkeypatch.delenv(name)
    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest.fixture
def make_server() -> Callable[..., Server]:
    """Build a Server; the daily metric reset thread is off unless asked for."""

    def _make(**overrides: Any) -> Server:
        overrides.setdefault("metric_reset_enabled", False)
        return Server(config=ServerConfig(**overrides))

    return _make


@pytest.fixture
def client_for() -> Callable[[Server], AsyncClient]:
    def _client(server: Server) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=server), base_url="http://test")

    return _client


@pytest.fixture
def server(make_server: Callable[..., Server]) -> Server:
    return make_server()


@pytest.fixture
async def api_client(server: Server, client_for: Callable[[Server], AsyncClient]):
    async with client_for(server) as client:
        yield client


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """A bare Request, for calling composed handlers without a router."""

    def _make(path: str = "/x", method: str = "GET", query: bytes = b"", body: bytes = b"") -> Request:
        async def receive() -> dict[str, Any]:
            return {"type": "http.request", "body": body, "more_body": False}

        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query,
            "headers": [],
            "client": ("10.0.0.1", 5000),
            "path_params": {},
        }
        return Request(scope, receive)

    return _make
