"""Timed network fetches.

Every fetch runs under a hard deadline covering connect, headers and body.
When it is exceeded the request is cancelled (the stream context closes and
the connection is released) and ``TIMEOUT`` is raised. Connection-level
failures raise ``NETWORK_ERROR``. HTTP error statuses are ordinary responses.

The fetcher never retries; retry policy belongs to the calling strategy.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import structlog

from offlinegate.config import FetcherSettings
from offlinegate.errors import ErrorCode, OfflineGateError
from offlinegate.models.request import ResponseSnapshot

if TYPE_CHECKING:
    from offlinegate.models.request import InterceptedRequest

log = structlog.get_logger()

# Hop-by-hop headers, plus the ones invalidated by httpx decoding the body.
_DROPPED_RESPONSE_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "content-encoding",
        "content-length",
    }
)
# httpx sets accept-encoding itself, listing only the encodings it can decode.
_DROPPED_REQUEST_HEADERS = frozenset({"host", "content-length", "connection", "accept-encoding"})


def build_http_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Shared client for all interceptor traffic.

    Per-request deadlines are enforced by ``Fetcher``; the client-level
    timeout is disabled so it never races the outer deadline.
    """
    return httpx.AsyncClient(
        timeout=None,
        follow_redirects=True,
        transport=transport,
    )


def snapshot_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    return [
        (k.lower(), v)
        for k, v in headers.multi_items()
        if k.lower() not in _DROPPED_RESPONSE_HEADERS
    ]


class Fetcher:
    def __init__(self, client: httpx.AsyncClient, settings: FetcherSettings | None = None) -> None:
        self._client = client
        self._settings = settings or FetcherSettings()

    @property
    def default_timeout(self) -> float:
        return self._settings.default_timeout_seconds

    @property
    def api_timeout(self) -> float:
        return self._settings.api_timeout_seconds

    async def fetch(
        self, request: InterceptedRequest, timeout: float | None = None
    ) -> ResponseSnapshot:
        """Perform ``request`` within ``timeout`` seconds.

        Raises:
            OfflineGateError: ``TIMEOUT`` or ``NETWORK_ERROR``.
        """
        timeout = self.default_timeout if timeout is None else timeout
        headers = [
            (k, v) for k, v in request.headers if k.lower() not in _DROPPED_REQUEST_HEADERS
        ]

        try:
            async with asyncio.timeout(timeout):
                async with self._client.stream(
                    request.method,
                    request.url,
                    headers=headers,
                    content=request.body or None,
                ) as response:
                    body = await response.aread()
        except (TimeoutError, httpx.TimeoutException) as exc:
            log.warning("fetch_timeout", url=request.url, timeout=timeout)
            raise OfflineGateError(
                code=ErrorCode.TIMEOUT,
                message=f"No response from {request.url} within {timeout}s",
                recoverable=True,
            ) from exc
        except httpx.HTTPError as exc:
            log.warning("fetch_network_error", url=request.url, error=str(exc))
            raise OfflineGateError(
                code=ErrorCode.NETWORK_ERROR,
                message=f"Network error fetching {request.url}: {exc}",
                recoverable=True,
            ) from exc

        return ResponseSnapshot(
            status=response.status_code,
            headers=snapshot_headers(response.headers),
            body=body,
        )
