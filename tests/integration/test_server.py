"""End-to-end tests through the ASGI host."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from starlette.testclient import TestClient

    from tests.integration.conftest import Upstream

NAVIGATE = {"sec-fetch-mode": "navigate", "sec-fetch-dest": "document"}


def _cache_info(client: TestClient) -> dict:
    response = client.post("/__offlinegate/messages", json={"type": "GET_CACHE_INFO"})
    assert response.status_code == 200
    return response.json()


class TestStartup:
    def test_install_precaches_app_shell(self, client: TestClient) -> None:
        info = _cache_info(client)
        assert info["kyc-static-v1"]["count"] == 3

    def test_precached_shell_served_offline(self, client: TestClient, upstream: Upstream) -> None:
        upstream.online = False
        response = client.get("/app.js")
        assert response.status_code == 200
        assert response.content == b"boot()"


class TestStaticAndImages:
    def test_cached_static_does_not_touch_network(
        self, client: TestClient, upstream: Upstream
    ) -> None:
        seen = len(upstream.requests)
        response = client.get("/index.html")
        assert response.status_code == 200
        assert response.text == "<html>shell</html>"
        assert len(upstream.requests) == seen

    def test_offline_navigation_gets_offline_page(
        self, client: TestClient, upstream: Upstream
    ) -> None:
        upstream.online = False
        response = client.get("/about.html", headers=NAVIGATE)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "You're Offline" in response.text

    def test_offline_image_gets_placeholder(self, client: TestClient, upstream: Upstream) -> None:
        upstream.online = False
        response = client.get("/src/icons/selfie.png")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/svg+xml"

    def test_offline_subresource_is_bad_gateway(
        self, client: TestClient, upstream: Upstream
    ) -> None:
        upstream.online = False
        response = client.get("/src/js/extra.js")
        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "NETWORK_ERROR"
        assert error["recoverable"] is True


class TestApi:
    def test_get_cached_and_served_offline_with_marker(
        self, client: TestClient, upstream: Upstream
    ) -> None:
        upstream.route("GET", "/api/status", httpx.Response(200, json={"verified": False}))
        assert client.get("/api/status").json() == {"verified": False}

        upstream.online = False
        response = client.get("/api/status")

        assert response.status_code == 200
        assert response.json() == {"verified": False}
        assert response.headers["x-served-by"] == "cache-offline"

    def test_offline_upload_queued_then_replayed(
        self, client: TestClient, upstream: Upstream
    ) -> None:
        client.get("/__offlinegate/events", params={"client": "tab-1", "timeout": 0})
        upstream.route("POST", "/api/upload", httpx.Response(200, json={"success": True}))
        upstream.online = False

        response = client.post("/api/upload", json={"document": "pan-card"})

        assert response.status_code == 202
        assert response.json() == {
            "success": False,
            "message": "Request queued for background sync",
            "offline": True,
        }

        upstream.online = True
        summary = client.post("/__offlinegate/sync", json={"tag": "background-upload"}).json()
        assert summary == {"succeeded": 1, "failed": 0, "discarded": 0}

        replayed = upstream.requests[-1]
        assert replayed.method == "POST"
        assert replayed.url == "https://app.example.com/api/upload"
        assert b"pan-card" in replayed.content

        events = client.get("/__offlinegate/events", params={"client": "tab-1"}).json()
        assert events == [
            {"type": "SYNC_SUCCESS", "data": {"url": "https://app.example.com/api/upload"}}
        ]

    def test_failed_replay_keeps_item(self, client: TestClient, upstream: Upstream) -> None:
        upstream.online = False
        client.post("/api/upload", content=b"scan")

        summary = client.post("/__offlinegate/sync", json={"tag": "background-upload"}).json()

        assert summary == {"succeeded": 0, "failed": 1, "discarded": 0}

    def test_upstream_error_status_passed_through(
        self, client: TestClient, upstream: Upstream
    ) -> None:
        upstream.route("POST", "/api/verify", httpx.Response(422, json={"error": "blurry"}))
        response = client.post("/api/verify", content=b"img")
        assert response.status_code == 422
        assert response.json() == {"error": "blurry"}

    def test_repeated_response_headers_pass_through(
        self, client: TestClient, upstream: Upstream
    ) -> None:
        upstream.route(
            "GET",
            "/api/session",
            httpx.Response(200, headers=[("set-cookie", "a=1"), ("set-cookie", "b=2")]),
        )
        assert client.get("/api/session").headers.get_list("set-cookie") == ["a=1", "b=2"]

        upstream.online = False
        cached = client.get("/api/session")
        assert cached.headers.get_list("set-cookie") == ["a=1", "b=2"]

    def test_client_accept_encoding_not_forwarded(
        self, client: TestClient, upstream: Upstream
    ) -> None:
        upstream.route("GET", "/api/ping", httpx.Response(200, text="pong"))
        response = client.get("/api/ping", headers={"accept-encoding": "zstd-unknown"})

        assert response.text == "pong"
        assert upstream.requests[-1].headers["accept-encoding"] != "zstd-unknown"


class TestControlMessages:
    def test_clear_cache(self, client: TestClient) -> None:
        response = client.post(
            "/__offlinegate/messages",
            json={"type": "CLEAR_CACHE", "data": {"cacheName": "kyc-static-v1"}},
        )
        assert response.status_code == 200
        assert "kyc-static-v1" not in _cache_info(client)

    def test_cache_urls(self, client: TestClient, upstream: Upstream) -> None:
        upstream.route("GET", "/help", httpx.Response(200, text="help"))
        client.post(
            "/__offlinegate/messages", json={"type": "CACHE_URLS", "data": {"urls": ["/help"]}}
        )
        assert _cache_info(client)["kyc-dynamic-v1"]["urls"] == [
            "https://app.example.com/help"
        ]

    def test_invalid_message_data(self, client: TestClient) -> None:
        response = client.post(
            "/__offlinegate/messages", json={"type": "CLEAR_CACHE", "data": {}}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_MESSAGE"

    def test_malformed_json(self, client: TestClient) -> None:
        response = client.post("/__offlinegate/messages", content=b"{not json")
        assert response.status_code == 400

    def test_events_require_client(self, client: TestClient) -> None:
        assert client.get("/__offlinegate/events").status_code == 400

    def test_events_poll_times_out_empty(self, client: TestClient) -> None:
        response = client.get("/__offlinegate/events", params={"client": "tab-2"})
        assert response.json() == []

    def test_events_reject_non_numeric_timeout(self, client: TestClient) -> None:
        response = client.get(
            "/__offlinegate/events", params={"client": "tab-3", "timeout": "soon"}
        )
        assert response.status_code == 400

    def test_events_timeout_clamped_to_poll_limit(self, client: TestClient) -> None:
        # poll_timeout_seconds is 0.2 in the test settings
        response = client.get(
            "/__offlinegate/events", params={"client": "tab-4", "timeout": "3600"}
        )
        assert response.status_code == 200
        assert response.json() == []

    def test_sync_rejects_non_string_tag(self, client: TestClient) -> None:
        response = client.post("/__offlinegate/sync", json={"tag": 1})
        assert response.status_code == 400
