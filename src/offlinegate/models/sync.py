from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from offlinegate.models.request import HeaderList


class SyncQueueItem(BaseModel):
    """A mutating request deferred until connectivity returns."""

    id: int
    url: str
    method: str
    headers: HeaderList
    body: bytes
    enqueued_at: datetime
    retry_count: int = 0


class ReplaySummary(BaseModel):
    succeeded: int = 0
    failed: int = 0
    discarded: int = 0
