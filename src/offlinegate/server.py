"""ASGI host: a local reverse proxy that runs every request through the interceptor.

Paths under ``/__offlinegate/`` are the page-facing control surface; every
other path is forwarded to ``interceptor.origin`` via the caching strategies.

Run with ``python -m offlinegate.server`` or the ``offlinegate`` script.
"""

from __future__ import annotations

import math
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite
import structlog
import uvicorn
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from offlinegate.cache import CacheStorage
from offlinegate.config import Settings
from offlinegate.errors import ErrorCode, OfflineGateError
from offlinegate.fetcher import Fetcher, build_http_client
from offlinegate.interceptor import Interceptor
from offlinegate.logging_config import setup_logging
from offlinegate.models.events import ActivateEvent, FetchEvent, InstallEvent, SyncEvent
from offlinegate.models.messages import ControlMessage
from offlinegate.models.request import InterceptedRequest
from offlinegate.notifier import ClientNotifier
from offlinegate.state import AppState, Phase
from offlinegate.sync_queue import SyncQueue

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx
    from starlette.datastructures import Headers
    from starlette.requests import Request

log = structlog.get_logger()

CONTROL_PREFIX = "/__offlinegate"

_ALL_METHODS = ["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"]


def _prepare_db_path(db_path: str) -> str:
    if db_path == ":memory:":
        return db_path
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return str(path)


def _destination(headers: Headers) -> str:
    if headers.get("sec-fetch-mode") == "navigate":
        return "document"
    return headers.get("sec-fetch-dest", "")


def _error_response(exc: OfflineGateError) -> JSONResponse:
    if exc.code is ErrorCode.TIMEOUT:
        status = 504
    elif exc.code is ErrorCode.INVALID_MESSAGE:
        status = 400
    else:
        status = 502
    return JSONResponse(exc.to_dict(), status_code=status)


async def intercept(request: Request) -> Response:
    interceptor: Interceptor = request.state.interceptor
    origin = interceptor.state.settings.interceptor.origin.rstrip("/")
    url = origin + request.url.path
    if request.url.query:
        url += f"?{request.url.query}"

    intercepted = InterceptedRequest(
        method=request.method,
        url=url,
        headers=[(k, v) for k, v in request.headers.items() if k != "host"],
        body=await request.body(),
        destination=_destination(request.headers),
    )
    try:
        snapshot = await interceptor.dispatch(FetchEvent(request=intercepted))
    except OfflineGateError as exc:
        return _error_response(exc)
    response = Response(content=snapshot.body, status_code=snapshot.status)
    for name, value in snapshot.headers:
        response.headers.append(name, value)
    return response


async def post_message(request: Request) -> Response:
    interceptor: Interceptor = request.state.interceptor
    try:
        message = ControlMessage.model_validate(await request.json())
    except (ValueError, ValidationError) as exc:
        return _error_response(
            OfflineGateError(
                code=ErrorCode.INVALID_MESSAGE,
                message=f"Malformed control message: {exc}",
                recoverable=False,
            )
        )

    try:
        reply = await interceptor.handle_message(message, request.query_params.get("client"))
    except OfflineGateError as exc:
        return _error_response(exc)
    return JSONResponse(reply)


async def sync(request: Request) -> Response:
    interceptor: Interceptor = request.state.interceptor
    tag = interceptor.state.settings.sync.tag
    if await request.body():
        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse({"error": "sync body must be JSON"}, status_code=400)
        if isinstance(payload, dict):
            tag = payload.get("tag", tag)
        if not isinstance(tag, str):
            return JSONResponse({"error": "sync tag must be a string"}, status_code=400)
    summary = await interceptor.dispatch(SyncEvent(tag=tag))
    return JSONResponse(summary.model_dump() if summary is not None else None)


async def events(request: Request) -> Response:
    interceptor: Interceptor = request.state.interceptor
    client_id = request.query_params.get("client")
    if not client_id:
        return JSONResponse({"error": "client query parameter is required"}, status_code=400)

    state = interceptor.state
    max_timeout = state.settings.server.poll_timeout_seconds
    try:
        timeout = float(request.query_params.get("timeout", max_timeout))
    except ValueError:
        timeout = math.nan
    if math.isnan(timeout):
        return JSONResponse({"error": "timeout must be a number"}, status_code=400)
    timeout = min(max(timeout, 0.0), max_timeout)

    state.notifier.register(client_id, controlled=state.phase is Phase.ACTIVATED)
    messages = await state.notifier.receive(client_id, timeout)
    return JSONResponse([m.model_dump() for m in messages])


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Starlette:
    """Build the ASGI app. ``transport`` replaces the network in tests."""
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[dict[str, Any]]:
        db_path = _prepare_db_path(settings.cache.db_path)
        async with aiosqlite.connect(db_path) as db, build_http_client(transport) as client:
            cache = CacheStorage(db)
            await cache.init_db()
            queue = SyncQueue(db)
            await queue.init_db()

            state = AppState(
                settings=settings,
                cache=cache,
                queue=queue,
                fetcher=Fetcher(client, settings.fetcher),
                notifier=ClientNotifier(
                    inbox_size=settings.server.client_inbox_size,
                    idle_seconds=settings.server.client_idle_seconds,
                ),
            )
            interceptor = Interceptor(state)
            await interceptor.dispatch(InstallEvent())
            if state.skip_waiting:
                await interceptor.dispatch(ActivateEvent())
            log.info("server_ready", origin=settings.interceptor.origin, phase=state.phase)
            yield {"interceptor": interceptor}
            state.notifier.clear()
        log.info("server_stopped")

    routes = [
        Route(f"{CONTROL_PREFIX}/messages", post_message, methods=["POST"]),
        Route(f"{CONTROL_PREFIX}/sync", sync, methods=["POST"]),
        Route(f"{CONTROL_PREFIX}/events", events, methods=["GET"]),
        Route("/{path:path}", intercept, methods=_ALL_METHODS),
    ]
    return Starlette(routes=routes, lifespan=lifespan)


def main() -> None:
    settings = Settings()
    setup_logging(settings.logging)
    log.info(
        "server_starting",
        host=settings.server.host,
        port=settings.server.port,
        origin=settings.interceptor.origin,
    )
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
