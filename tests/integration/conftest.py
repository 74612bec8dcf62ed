"""Integration test fixtures.

Provides the full ASGI app with in-memory SQLite and an upstream origin
simulated by ``httpx.MockTransport``. Set ``upstream.online = False`` to cut
the network.
"""

from __future__ import annotations

import os
import sys

import httpx
import pytest
from starlette.testclient import TestClient

from offlinegate.config import Settings
from offlinegate.server import create_app

ORIGIN = "https://app.example.com"


class Upstream:
    """Scriptable origin server."""

    def __init__(self) -> None:
        self.online = True
        self.routes: dict[tuple[str, str], httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, response: httpx.Response) -> None:
        self.routes[(method, path)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.online:
            raise httpx.ConnectError("network unreachable", request=request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(
            response.status_code, headers=response.headers, content=response.content
        )


@pytest.fixture()
def upstream() -> Upstream:
    up = Upstream()
    up.route("GET", "/", httpx.Response(200, html="<html>shell</html>"))
    up.route("GET", "/index.html", httpx.Response(200, html="<html>shell</html>"))
    up.route("GET", "/app.js", httpx.Response(200, content=b"boot()"))
    return up


@pytest.fixture()
def app_settings() -> Settings:
    return Settings(
        interceptor={
            "origin": ORIGIN,
            "namespace_prefix": "kyc",
            "generation": "v1",
            "precache_urls": ["/", "/index.html", "/app.js"],
        },
        cache={"db_path": ":memory:"},
        server={"poll_timeout_seconds": 0.2},
    )


@pytest.fixture()
def client(app_settings: Settings, upstream: Upstream):
    app = create_app(app_settings, transport=httpx.MockTransport(upstream.handler))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def subprocess_env(tmp_path) -> dict[str, str]:
    """Environment for running the server as a subprocess."""
    env = os.environ.copy()
    env["OFFLINEGATE__CACHE__DB_PATH"] = str(tmp_path / "offlinegate.db")
    env["PYTHONPATH"] = os.pathsep.join(p for p in sys.path if p)
    return env
