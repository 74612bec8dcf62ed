"""SQLite-backed bounded cache stores with FIFO eviction.

Every named store is a set of rows in ``cache_entries`` sharing a
``cache_name``. Insertion order is a global ``seq`` counter; ``trim`` removes
the lowest ``seq`` values first, never by recency of use.

All operations catch ``aiosqlite.Error`` internally and degrade gracefully:
read failures return ``None`` or empty results (treated as a miss by
callers), write failures are logged and ignored (the fetched response is
still returned). Infrastructure errors never cross the CacheStorage boundary.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime

import aiosqlite
import structlog

from offlinegate.models.cache import CacheEntry, CacheName
from offlinegate.models.request import ResponseSnapshot

log = structlog.get_logger()

_CREATE_STORES_TABLE = """
CREATE TABLE IF NOT EXISTS cache_stores (
    name        TEXT PRIMARY KEY,
    prefix      TEXT NOT NULL,
    category    TEXT NOT NULL,
    generation  TEXT NOT NULL,
    created_at  TEXT NOT NULL
)
"""

_CREATE_ENTRIES_TABLE = """
CREATE TABLE IF NOT EXISTS cache_entries (
    cache_name  TEXT NOT NULL,
    url         TEXT NOT NULL,
    seq         INTEGER NOT NULL,
    status      INTEGER NOT NULL,
    headers     TEXT NOT NULL DEFAULT '[]',
    body        BLOB NOT NULL,
    stored_at   TEXT NOT NULL,
    PRIMARY KEY (cache_name, url)
)
"""

_CREATE_SEQ_INDEX = "CREATE INDEX IF NOT EXISTS idx_entries_seq ON cache_entries(cache_name, seq)"


class CacheStorage:
    """Named, versioned key -> response collections."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_STORES_TABLE)
        await self._db.execute(_CREATE_ENTRIES_TABLE)
        await self._db.execute(_CREATE_SEQ_INDEX)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    async def open(self, name: CacheName) -> None:
        """Register a store. Idempotent; non-fatal on failure."""
        try:
            await self._db.execute(
                "INSERT OR IGNORE INTO cache_stores "
                "(name, prefix, category, generation, created_at) VALUES (?, ?, ?, ?, ?)",
                (
                    str(name),
                    name.prefix,
                    name.category,
                    name.generation,
                    datetime.now(UTC).isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_open_error", cache=str(name), exc_info=True)

    async def names(self) -> list[CacheName]:
        """All known stores, oldest first. Returns ``[]`` on read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT prefix, category, generation FROM cache_stores ORDER BY rowid"
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            log.warning("cache_read_error", key="cache_stores", exc_info=True)
            return []
        return [CacheName(prefix=r[0], category=r[1], generation=r[2]) for r in rows]

    async def delete(self, name: str) -> bool:
        """Delete one store and all of its entries. Returns whether it existed."""
        try:
            entries = await self._db.execute(
                "DELETE FROM cache_entries WHERE cache_name = ?", (name,)
            )
            stores = await self._db.execute("DELETE FROM cache_stores WHERE name = ?", (name,))
            deleted = stores.rowcount > 0 or entries.rowcount > 0
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_delete_error", cache=name, exc_info=True)
            return False
        if deleted:
            log.info("cache_deleted", cache=name)
        return deleted

    async def delete_generation(self, predicate: Callable[[CacheName], bool]) -> list[str]:
        """Delete every store whose structured name satisfies ``predicate``.

        Each store is deleted independently; a failure on one is logged and
        does not stop the others.
        """
        deleted: list[str] = []
        for name in await self.names():
            if predicate(name) and await self.delete(str(name)):
                deleted.append(str(name))
        return deleted

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    async def get(self, name: str, url: str) -> CacheEntry | None:
        """Read an entry. Returns ``None`` on cache miss or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT seq, status, headers, body, stored_at "
                "FROM cache_entries WHERE cache_name = ? AND url = ?",
                (name, url),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            return CacheEntry(
                cache_name=name,
                url=url,
                response=ResponseSnapshot(
                    status=row[1], headers=json.loads(row[2]), body=bytes(row[3])
                ),
                seq=row[0],
                stored_at=datetime.fromisoformat(row[4]),
            )
        except (aiosqlite.Error, ValueError):
            log.warning("cache_read_error", cache=name, url=url, exc_info=True)
            return None

    async def put(self, name: str, url: str, response: ResponseSnapshot) -> None:
        """Write an entry, replacing any previous one for ``url``. Non-fatal on failure.

        A replaced entry takes the newest position in insertion order.
        """
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO cache_entries "
                "(cache_name, url, seq, status, headers, body, stored_at) "
                "VALUES (?, ?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM cache_entries), "
                "?, ?, ?, ?)",
                (
                    name,
                    url,
                    response.status,
                    json.dumps(response.headers),
                    response.body,
                    datetime.now(UTC).isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", cache=name, url=url, exc_info=True)

    async def trim(self, name: str, max_entries: int) -> int:
        """Evict oldest-inserted entries until ``count <= max_entries``.

        Returns the number of entries removed (0 on failure).
        """
        try:
            cursor = await self._db.execute(
                "DELETE FROM cache_entries WHERE cache_name = ? AND seq IN ("
                "  SELECT seq FROM cache_entries WHERE cache_name = ? "
                "  ORDER BY seq DESC LIMIT -1 OFFSET ?"
                ")",
                (name, name, max_entries),
            )
            removed = cursor.rowcount
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_trim_error", cache=name, exc_info=True)
            return 0
        if removed > 0:
            log.info("cache_trimmed", cache=name, removed=removed, limit=max_entries)
        return removed

    async def urls(self, name: str) -> list[str]:
        """Entry URLs of a store in insertion order. Returns ``[]`` on read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT url FROM cache_entries WHERE cache_name = ? ORDER BY seq", (name,)
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            log.warning("cache_read_error", cache=name, exc_info=True)
            return []
        return [row[0] for row in rows]

    async def count(self, name: str) -> int:
        try:
            cursor = await self._db.execute(
                "SELECT COUNT(*) FROM cache_entries WHERE cache_name = ?", (name,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("cache_read_error", cache=name, exc_info=True)
            return 0
        return row[0] if row else 0
