"""Event dispatch.

Every input to the layer is an event: an intercepted request, a lifecycle
phase, a connectivity-restored sync signal or a control message from a page.
``Interceptor.dispatch`` routes each kind through an explicit handler table.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from offlinegate import lifecycle
from offlinegate.classifier import classify_request
from offlinegate.errors import ErrorCode, OfflineGateError
from offlinegate.models.cache import CacheStoreInfo
from offlinegate.models.events import (
    ActivateEvent,
    EventKind,
    FetchEvent,
    InstallEvent,
    MessageEvent,
    SyncEvent,
)
from offlinegate.models.messages import (
    CACHE_URLS,
    CLEAR_CACHE,
    GET_CACHE_INFO,
    SKIP_WAITING,
    CacheUrlsData,
    ClearCacheData,
    ControlMessage,
)
from offlinegate.models.request import Category
from offlinegate.replay import ReplayEngine
from offlinegate.state import Phase
from offlinegate.strategies import cache_first, network_first

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from offlinegate.models.events import Event
    from offlinegate.models.request import InterceptedRequest, ResponseSnapshot
    from offlinegate.models.sync import ReplaySummary
    from offlinegate.state import AppState

log = structlog.get_logger()

_STRATEGIES = {
    Category.STATIC: cache_first,
    Category.IMAGE: cache_first,
    Category.API: network_first,
    Category.DYNAMIC: network_first,
}


class Interceptor:
    def __init__(self, state: AppState) -> None:
        self.state = state
        self.replay_engine = ReplayEngine(state)
        self._handlers: dict[EventKind, Callable[[Any], Awaitable[Any]]] = {
            EventKind.FETCH: self._on_fetch,
            EventKind.INSTALL: self._on_install,
            EventKind.ACTIVATE: self._on_activate,
            EventKind.SYNC: self._on_sync,
            EventKind.MESSAGE: self._on_message,
        }
        self._message_handlers: dict[str, Callable[[ControlMessage], Awaitable[Any]]] = {
            SKIP_WAITING: self._skip_waiting,
            CACHE_URLS: self._cache_urls,
            CLEAR_CACHE: self._clear_cache,
            GET_CACHE_INFO: self._cache_info,
        }

    async def dispatch(self, event: Event) -> Any:
        return await self._handlers[event.kind](event)

    # ------------------------------------------------------------------
    # Convenience entry points
    # ------------------------------------------------------------------

    async def handle_fetch(self, request: InterceptedRequest) -> ResponseSnapshot:
        return await self.dispatch(FetchEvent(request=request))

    async def handle_message(self, message: ControlMessage, client_id: str | None = None) -> Any:
        return await self.dispatch(MessageEvent(message=message, client_id=client_id))

    async def handle_sync(self, tag: str) -> ReplaySummary | None:
        return await self.dispatch(SyncEvent(tag=tag))

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _on_fetch(self, event: FetchEvent) -> ResponseSnapshot:
        request = event.request
        if self.state.phase is not Phase.ACTIVATED:
            # Not in control yet: plain network, no caching or deferral.
            return await self.state.fetcher.fetch(request)

        category = classify_request(request, self.state.settings)
        log.debug("request_intercepted", method=request.method, url=request.url, category=category)
        return await _STRATEGIES[category](request, category, self.state)

    async def _on_install(self, event: InstallEvent) -> int:
        return await lifecycle.install(self.state)

    async def _on_activate(self, event: ActivateEvent) -> list[str]:
        return await lifecycle.activate(self.state)

    async def _on_sync(self, event: SyncEvent) -> ReplaySummary | None:
        if event.tag != self.state.settings.sync.tag:
            log.info("sync_tag_ignored", tag=event.tag)
            return None
        return await self.replay_engine.replay()

    async def _on_message(self, event: MessageEvent) -> Any:
        message = event.message
        if event.client_id is not None:
            self.state.notifier.register(
                event.client_id, controlled=self.state.phase is Phase.ACTIVATED
            )

        handler = self._message_handlers.get(message.type)
        if handler is None:
            log.info("message_ignored", type=message.type)
            return None
        log.debug("message_received", type=message.type)
        return await handler(message)

    # ------------------------------------------------------------------
    # Control messages
    # ------------------------------------------------------------------

    async def _skip_waiting(self, message: ControlMessage) -> None:
        self.state.skip_waiting = True
        if self.state.phase is Phase.INSTALLED:
            await lifecycle.activate(self.state)

    async def _cache_urls(self, message: ControlMessage) -> None:
        data = _parse(CacheUrlsData, message)
        store = self.state.store_name("dynamic")
        await lifecycle.precache(self.state, store, data.urls)

    async def _clear_cache(self, message: ControlMessage) -> None:
        data = _parse(ClearCacheData, message)
        await self.state.cache.delete(data.cache_name)

    async def _cache_info(self, message: ControlMessage) -> dict[str, dict[str, Any]]:
        info: dict[str, dict[str, Any]] = {}
        for name in await self.state.cache.names():
            urls = await self.state.cache.urls(str(name))
            info[str(name)] = CacheStoreInfo(count=len(urls), urls=urls).model_dump()
        return info


def _parse(model: type[Any], message: ControlMessage) -> Any:
    try:
        return model.model_validate(message.data)
    except ValidationError as exc:
        raise OfflineGateError(
            code=ErrorCode.INVALID_MESSAGE,
            message=f"Invalid {message.type} message: {exc.errors(include_url=False)}",
            recoverable=False,
        ) from exc
