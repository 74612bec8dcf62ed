from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Page -> interceptor control message types
SKIP_WAITING = "SKIP_WAITING"
CACHE_URLS = "CACHE_URLS"
CLEAR_CACHE = "CLEAR_CACHE"
GET_CACHE_INFO = "GET_CACHE_INFO"

# Interceptor -> page notification types
SYNC_SUCCESS = "SYNC_SUCCESS"
SYNC_FAILED = "SYNC_FAILED"


class ControlMessage(BaseModel):
    """``{type, data}`` envelope posted by a page."""

    type: str
    data: dict[str, Any] = Field(default_factory=dict)


class CacheUrlsData(BaseModel):
    urls: list[str]


class ClearCacheData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cache_name: str = Field(alias="cacheName")


class ClientMessage(BaseModel):
    """Status event posted back to page contexts."""

    type: str
    data: dict[str, Any] = Field(default_factory=dict)
