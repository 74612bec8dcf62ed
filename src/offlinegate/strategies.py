"""Caching strategies.

``cache_first`` serves static assets and images: a stored entry wins and the
network is only contacted on a miss. ``network_first`` serves API and other
dynamic traffic: the network wins, the dynamic store is the read fallback and
the sync queue is the write fallback.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from offlinegate.errors import OfflineGateError
from offlinegate.fallbacks import mark_offline, offline_page, placeholder_image, queued_response
from offlinegate.models.request import Category

if TYPE_CHECKING:
    from offlinegate.models.cache import CacheName
    from offlinegate.models.request import InterceptedRequest, ResponseSnapshot
    from offlinegate.state import AppState

log = structlog.get_logger()


async def store_response(
    state: AppState, store: CacheName, key: str, response: ResponseSnapshot
) -> None:
    """Write ``response`` under ``key`` and trim the store to its limit."""
    name = str(store)
    await state.cache.open(store)
    await state.cache.put(name, key, response)
    await state.cache.trim(name, state.store_limit(store.category))


async def cache_first(
    request: InterceptedRequest, category: Category, state: AppState
) -> ResponseSnapshot:
    store = state.store_for(category)
    key = request.cache_key

    if key is not None:
        entry = await state.cache.get(str(store), key)
        if entry is not None:
            log.debug("cache_hit", cache=str(store), url=key)
            return entry.response

    try:
        response = await state.fetcher.fetch(request, state.fetcher.default_timeout)
    except OfflineGateError as exc:
        log.warning("cache_first_fetch_failed", url=request.url, code=exc.code)
        if request.is_navigation:
            return offline_page()
        if category is Category.IMAGE:
            return placeholder_image()
        raise

    if key is not None and response.ok:
        await store_response(state, store, key, response)
    return response


async def network_first(
    request: InterceptedRequest, category: Category, state: AppState
) -> ResponseSnapshot:
    store = state.store_for(category)
    key = request.cache_key
    if category is Category.API:
        timeout = state.fetcher.api_timeout
    else:
        timeout = state.fetcher.default_timeout

    try:
        response = await state.fetcher.fetch(request, timeout)
    except OfflineGateError as exc:
        log.warning("network_first_fetch_failed", url=request.url, code=exc.code)
        if request.is_mutating:
            return await _defer(request, state, exc)

        if key is not None:
            entry = await state.cache.get(str(store), key)
            if entry is not None:
                log.info("served_from_cache_offline", url=key)
                return mark_offline(entry.response)
        if request.is_navigation:
            return offline_page()
        raise

    if key is not None and response.ok:
        await store_response(state, store, key, response)
    return response


async def _defer(
    request: InterceptedRequest, state: AppState, fetch_error: OfflineGateError
) -> ResponseSnapshot:
    """Queue a failed mutating request and answer with 202 queued.

    If the queue write fails, deferral cannot be guaranteed and the original
    fetch error is raised instead.
    """
    try:
        await state.queue.enqueue(request)
    except OfflineGateError:
        log.error("sync_deferral_failed", url=request.url, method=request.method)
        raise fetch_error from None

    state.registered_sync_tags.add(state.settings.sync.tag)
    return queued_response()
