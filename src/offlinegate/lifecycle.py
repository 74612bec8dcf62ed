"""Install and activate phases."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from urllib.parse import urljoin

import structlog

from offlinegate.errors import OfflineGateError
from offlinegate.models.request import InterceptedRequest
from offlinegate.state import Phase
from offlinegate.strategies import store_response

if TYPE_CHECKING:
    from offlinegate.models.cache import CacheName
    from offlinegate.state import AppState

log = structlog.get_logger()


async def precache(state: AppState, store: CacheName, urls: list[str]) -> int:
    """Best-effort fetch of ``urls`` into ``store``.

    Relative URLs resolve against the interceptor origin. Fetches run
    concurrently; each store write is followed by a trim, so the store never
    holds more than its limit. Individual failures are logged and skipped.
    Returns the number of URLs cached.
    """
    await state.cache.open(store)
    origin = state.settings.interceptor.origin
    write_lock = asyncio.Lock()
    results = await asyncio.gather(
        *(_cache_one(state, store, urljoin(origin, url), write_lock) for url in urls)
    )
    return sum(results)


async def _cache_one(
    state: AppState, store: CacheName, url: str, write_lock: asyncio.Lock
) -> bool:
    try:
        request = InterceptedRequest(url=url)
        response = await state.fetcher.fetch(request)
    except (OfflineGateError, ValueError):
        log.warning("precache_failed", cache=str(store), url=url, exc_info=True)
        return False
    if not response.ok:
        log.warning("precache_failed", cache=str(store), url=url, status=response.status)
        return False

    async with write_lock:
        await store_response(state, store, request.cache_key, response)
    log.debug("precached", cache=str(store), url=url)
    return True


async def install(state: AppState) -> int:
    """Pre-cache the app shell and mark the version eligible for immediate activation."""
    store = state.store_name("static")
    urls = state.settings.interceptor.precache_urls
    cached = await precache(state, store, urls)

    state.skip_waiting = True
    state.phase = Phase.INSTALLED
    log.info("install_complete", cache=str(store), cached=cached, total=len(urls))
    return cached


async def activate(state: AppState) -> list[str]:
    """Delete stale cache generations and take control of open clients."""
    prefix = state.settings.interceptor.namespace_prefix
    generation = state.settings.interceptor.generation

    deleted = await state.cache.delete_generation(
        lambda name: name.prefix == prefix and name.generation != generation
    )
    claimed = state.notifier.claim()
    state.phase = Phase.ACTIVATED
    log.info("activate_complete", generation=generation, deleted=deleted, claimed=claimed)
    return deleted
