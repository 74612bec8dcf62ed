from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from offlinegate.models.request import ResponseSnapshot


class CacheName(BaseModel):
    """Structured name of a bounded cache store: ``{prefix}-{category}-{generation}``."""

    model_config = ConfigDict(frozen=True)

    prefix: str
    category: str  # "static" | "dynamic" | "images"
    generation: str

    def __str__(self) -> str:
        return f"{self.prefix}-{self.category}-{self.generation}"


class CacheEntry(BaseModel):
    """A stored response. Replaced wholesale on re-fetch."""

    cache_name: str
    url: str
    response: ResponseSnapshot
    seq: int  # Insertion order; lowest is evicted first
    stored_at: datetime


class CacheStoreInfo(BaseModel):
    count: int
    urls: list[str]
