"""Durable queue of deferred mutating requests.

Unlike the response cache, a failed enqueue is surfaced to the caller as
``QUEUE_WRITE_FAILED``: deferral cannot be promised if the request was not
persisted. Reads and bookkeeping writes degrade gracefully like the cache.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from offlinegate.errors import ErrorCode, OfflineGateError
from offlinegate.models.sync import SyncQueueItem

if TYPE_CHECKING:
    from offlinegate.models.request import InterceptedRequest

log = structlog.get_logger()

_CREATE_QUEUE_TABLE = """
CREATE TABLE IF NOT EXISTS sync_queue (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    url          TEXT NOT NULL,
    method       TEXT NOT NULL,
    headers      TEXT NOT NULL DEFAULT '[]',
    body         BLOB NOT NULL,
    enqueued_at  TEXT NOT NULL,
    retry_count  INTEGER NOT NULL DEFAULT 0
)
"""


class SyncQueue:
    """SQLite-backed FIFO of ``SyncQueueItem`` rows."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        await self._db.execute(_CREATE_QUEUE_TABLE)
        await self._db.commit()

    async def enqueue(self, request: InterceptedRequest) -> SyncQueueItem:
        """Persist a request for later replay.

        Raises:
            OfflineGateError: ``QUEUE_WRITE_FAILED`` if the row could not be written.
        """
        enqueued_at = datetime.now(UTC)
        try:
            cursor = await self._db.execute(
                "INSERT INTO sync_queue (url, method, headers, body, enqueued_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    request.url,
                    request.method,
                    json.dumps(request.headers),
                    request.body,
                    enqueued_at.isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            log.error("sync_enqueue_error", url=request.url, exc_info=True)
            raise OfflineGateError(
                code=ErrorCode.QUEUE_WRITE_FAILED,
                message=f"Could not queue {request.method} {request.url} for background sync",
                recoverable=True,
            ) from exc

        item = SyncQueueItem(
            id=cursor.lastrowid,
            url=request.url,
            method=request.method,
            headers=request.headers,
            body=request.body,
            enqueued_at=enqueued_at,
        )
        log.info("sync_item_queued", id=item.id, url=item.url, method=item.method)
        return item

    async def list_pending(self) -> list[SyncQueueItem]:
        """All pending items in enqueue order. Returns ``[]`` on read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT id, url, method, headers, body, enqueued_at, retry_count "
                "FROM sync_queue ORDER BY id"
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            log.warning("sync_read_error", exc_info=True)
            return []

        return [_row_to_item(row) for row in rows]

    async def get(self, item_id: int) -> SyncQueueItem | None:
        """Read one item. Returns ``None`` if absent or on read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT id, url, method, headers, body, enqueued_at, retry_count "
                "FROM sync_queue WHERE id = ?",
                (item_id,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("sync_read_error", id=item_id, exc_info=True)
            return None
        return _row_to_item(row) if row else None

    async def remove(self, item_id: int) -> None:
        """Delete an item. Non-fatal on failure (the item is replayed again)."""
        try:
            await self._db.execute("DELETE FROM sync_queue WHERE id = ?", (item_id,))
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("sync_remove_error", id=item_id, exc_info=True)

    async def record_failure(self, item_id: int) -> int:
        """Increment ``retry_count`` and return the new value (-1 on failure)."""
        try:
            await self._db.execute(
                "UPDATE sync_queue SET retry_count = retry_count + 1 WHERE id = ?", (item_id,)
            )
            await self._db.commit()
            cursor = await self._db.execute(
                "SELECT retry_count FROM sync_queue WHERE id = ?", (item_id,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("sync_update_error", id=item_id, exc_info=True)
            return -1
        return row[0] if row else -1

    async def count(self) -> int:
        try:
            cursor = await self._db.execute("SELECT COUNT(*) FROM sync_queue")
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("sync_read_error", exc_info=True)
            return 0
        return row[0] if row else 0


def _row_to_item(row: aiosqlite.Row | tuple) -> SyncQueueItem:
    return SyncQueueItem(
        id=row[0],
        url=row[1],
        method=row[2],
        headers=json.loads(row[3]),
        body=bytes(row[4]),
        enqueued_at=datetime.fromisoformat(row[5]),
        retry_count=row[6],
    )
