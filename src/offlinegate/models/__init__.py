from __future__ import annotations

from offlinegate.models.cache import CacheEntry, CacheName, CacheStoreInfo
from offlinegate.models.events import (
    ActivateEvent,
    Event,
    EventKind,
    FetchEvent,
    InstallEvent,
    MessageEvent,
    SyncEvent,
)
from offlinegate.models.messages import (
    CacheUrlsData,
    ClearCacheData,
    ClientMessage,
    ControlMessage,
)
from offlinegate.models.request import (
    MUTATING_METHODS,
    Category,
    HeaderList,
    InterceptedRequest,
    ResponseSnapshot,
)
from offlinegate.models.sync import ReplaySummary, SyncQueueItem

__all__ = [
    # request
    "Category",
    "InterceptedRequest",
    "ResponseSnapshot",
    "MUTATING_METHODS",
    "HeaderList",
    # cache
    "CacheName",
    "CacheEntry",
    "CacheStoreInfo",
    # sync
    "SyncQueueItem",
    "ReplaySummary",
    # messages
    "ControlMessage",
    "CacheUrlsData",
    "ClearCacheData",
    "ClientMessage",
    # events
    "EventKind",
    "Event",
    "FetchEvent",
    "InstallEvent",
    "ActivateEvent",
    "SyncEvent",
    "MessageEvent",
]
