"""Shared application state handed to every event handler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from offlinegate.models.cache import CacheName
from offlinegate.models.request import Category
from offlinegate.notifier import ClientNotifier

if TYPE_CHECKING:
    from offlinegate.cache import CacheStorage
    from offlinegate.config import Settings
    from offlinegate.fetcher import Fetcher
    from offlinegate.sync_queue import SyncQueue


class Phase(StrEnum):
    PARSED = "parsed"
    INSTALLED = "installed"
    ACTIVATED = "activated"


# Classifier category -> cache store category
_STORE_FOR_CATEGORY = {
    Category.STATIC: "static",
    Category.IMAGE: "images",
    Category.API: "dynamic",
    Category.DYNAMIC: "dynamic",
}


@dataclass
class AppState:
    settings: Settings
    cache: CacheStorage | None = None
    queue: SyncQueue | None = None
    fetcher: Fetcher | None = None
    notifier: ClientNotifier = field(default_factory=ClientNotifier)
    phase: Phase = Phase.PARSED
    skip_waiting: bool = False
    registered_sync_tags: set[str] = field(default_factory=set)

    def store_name(self, store: str) -> CacheName:
        """Current-generation name of the ``static``, ``dynamic`` or ``images`` store."""
        interceptor = self.settings.interceptor
        return CacheName(
            prefix=interceptor.namespace_prefix,
            category=store,
            generation=interceptor.generation,
        )

    def store_for(self, category: Category) -> CacheName:
        return self.store_name(_STORE_FOR_CATEGORY[category])

    def store_limit(self, store: str) -> int:
        limits = {
            "static": self.settings.cache.static_max_entries,
            "dynamic": self.settings.cache.dynamic_max_entries,
            "images": self.settings.cache.images_max_entries,
        }
        return limits[store]
