"""Replay of deferred requests once connectivity is restored.

Per item: ``pending -> replay -> removed`` on a 2xx response, otherwise
``pending`` again with ``retry_count + 1``. An item whose retry count reaches
``sync.max_retries`` is discarded and reported to clients as ``SYNC_FAILED``.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from offlinegate.errors import OfflineGateError
from offlinegate.models.messages import SYNC_FAILED, SYNC_SUCCESS, ClientMessage
from offlinegate.models.request import InterceptedRequest
from offlinegate.models.sync import ReplaySummary

if TYPE_CHECKING:
    from offlinegate.models.sync import SyncQueueItem
    from offlinegate.state import AppState

log = structlog.get_logger()


class ReplayEngine:
    def __init__(self, state: AppState) -> None:
        self._state = state
        self._lock = asyncio.Lock()

    async def replay(self) -> ReplaySummary:
        """Run one pass over the items pending when the pass starts.

        A pass already in progress makes this call a no-op.
        """
        summary = ReplaySummary()
        if self._lock.locked():
            log.info("replay_already_running")
            return summary

        async with self._lock:
            items = await self._state.queue.list_pending()
            log.info("replay_started", pending=len(items))
            for item in items:
                await self._replay_item(item, summary)

            if await self._state.queue.count() == 0:
                self._state.registered_sync_tags.discard(self._state.settings.sync.tag)
            log.info(
                "replay_complete",
                succeeded=summary.succeeded,
                failed=summary.failed,
                discarded=summary.discarded,
            )
        return summary

    async def _replay_item(self, item: SyncQueueItem, summary: ReplaySummary) -> None:
        queue = self._state.queue
        request = InterceptedRequest(
            method=item.method, url=item.url, headers=item.headers, body=item.body
        )

        try:
            response = await self._state.fetcher.fetch(request)
        except OfflineGateError as exc:
            log.warning("replay_failed", id=item.id, url=item.url, code=exc.code)
        else:
            if response.ok:
                await queue.remove(item.id)
                log.info("replay_succeeded", id=item.id, url=item.url)
                await self._state.notifier.post(
                    ClientMessage(type=SYNC_SUCCESS, data={"url": item.url})
                )
                summary.succeeded += 1
                return
            log.warning("replay_rejected", id=item.id, url=item.url, status=response.status)

        retry_count = await queue.record_failure(item.id)
        if retry_count >= self._state.settings.sync.max_retries:
            await queue.remove(item.id)
            log.warning("sync_item_discarded", id=item.id, url=item.url, retries=retry_count)
            await self._state.notifier.post(
                ClientMessage(type=SYNC_FAILED, data={"url": item.url, "retryCount": retry_count})
            )
            summary.discarded += 1
        else:
            summary.failed += 1
