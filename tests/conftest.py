"""Shared fixtures: settings and an in-memory fake fetcher."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from offlinegate.config import Settings
from offlinegate.errors import ErrorCode, OfflineGateError
from offlinegate.models.request import ResponseSnapshot

if TYPE_CHECKING:
    from offlinegate.models.request import InterceptedRequest

ORIGIN = "https://app.example.com"


class FakeFetcher:
    """Stands in for ``Fetcher``: canned responses per URL, or offline."""

    default_timeout = 10.0
    api_timeout = 5.0

    def __init__(self) -> None:
        self.responses: dict[str, ResponseSnapshot] = {}
        self.offline = False
        self.failing_urls: set[str] = set()
        self.calls: list[tuple[InterceptedRequest, float | None]] = []

    def respond(self, url: str, status: int = 200, body: bytes = b"ok", **headers: str) -> None:
        self.responses[url] = ResponseSnapshot(status=status, headers=headers, body=body)

    async def fetch(
        self, request: InterceptedRequest, timeout: float | None = None
    ) -> ResponseSnapshot:
        self.calls.append((request, timeout))
        if self.offline or request.url in self.failing_urls:
            raise OfflineGateError(
                code=ErrorCode.NETWORK_ERROR, message="offline", recoverable=True
            )
        if request.url not in self.responses:
            return ResponseSnapshot(status=404, body=b"not found")
        return self.responses[request.url]


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        interceptor={
            "origin": ORIGIN,
            "namespace_prefix": "kyc",
            "generation": "v2",
            "precache_urls": ["/", "/index.html", "/app.js"],
        },
        cache={
            "db_path": ":memory:",
            "static_max_entries": 3,
            "dynamic_max_entries": 3,
            "images_max_entries": 3,
        },
    )


@pytest.fixture()
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()
