"""Unit tests for offlinegate.lifecycle."""

from __future__ import annotations

from typing import TYPE_CHECKING

from offlinegate.lifecycle import activate, install, precache
from offlinegate.models.cache import CacheName
from offlinegate.state import Phase

if TYPE_CHECKING:
    from offlinegate.state import AppState
    from tests.conftest import FakeFetcher

ORIGIN = "https://app.example.com"


class TestInstall:
    async def test_precaches_manifest(self, state: AppState, fake_fetcher: FakeFetcher) -> None:
        for path in ("/", "/index.html", "/app.js"):
            fake_fetcher.respond(ORIGIN + path, body=path.encode())
        state.phase = Phase.PARSED

        cached = await install(state)

        assert cached == 3
        assert sorted(await state.cache.urls("kyc-static-v2")) == sorted(
            [f"{ORIGIN}/", f"{ORIGIN}/index.html", f"{ORIGIN}/app.js"]
        )
        assert state.phase is Phase.INSTALLED
        assert state.skip_waiting is True

    async def test_individual_failures_skipped(
        self, state: AppState, fake_fetcher: FakeFetcher
    ) -> None:
        fake_fetcher.respond(f"{ORIGIN}/")
        fake_fetcher.failing_urls.add(f"{ORIGIN}/index.html")
        # /app.js is unknown to the fake and answers 404

        cached = await install(state)

        assert cached == 1
        assert await state.cache.urls("kyc-static-v2") == [f"{ORIGIN}/"]
        assert state.phase is Phase.INSTALLED

    async def test_install_with_network_down_still_completes(
        self, state: AppState, fake_fetcher: FakeFetcher
    ) -> None:
        fake_fetcher.offline = True
        assert await install(state) == 0
        assert state.phase is Phase.INSTALLED
        assert await state.cache.names() == [
            CacheName(prefix="kyc", category="static", generation="v2")
        ]

    async def test_precache_resolves_relative_urls(
        self, state: AppState, fake_fetcher: FakeFetcher
    ) -> None:
        fake_fetcher.respond(f"{ORIGIN}/docs/help.html")
        store = state.store_name("dynamic")
        assert await precache(state, store, ["docs/help.html"]) == 1
        assert await state.cache.urls(str(store)) == [f"{ORIGIN}/docs/help.html"]

    async def test_store_never_exceeds_limit_during_batch(
        self, state: AppState, fake_fetcher: FakeFetcher
    ) -> None:
        urls = [f"/page/{n}" for n in range(6)]
        for url in urls:
            fake_fetcher.respond(ORIGIN + url)
        store = state.store_name("dynamic")
        limit = state.store_limit("dynamic")

        sizes_before_put: list[int] = []
        original_put = state.cache.put

        async def counting_put(name, url, response):
            sizes_before_put.append(await state.cache.count(name))
            await original_put(name, url, response)

        state.cache.put = counting_put  # type: ignore[method-assign]
        cached = await precache(state, store, urls)
        state.cache.put = original_put  # type: ignore[method-assign]

        assert cached == 6
        assert max(sizes_before_put) <= limit
        assert await state.cache.count(str(store)) == limit


class TestActivate:
    async def test_deletes_previous_generation(self, state: AppState) -> None:
        old = CacheName(prefix="kyc", category="static", generation="v1")
        old_images = CacheName(prefix="kyc", category="images", generation="v1")
        current = CacheName(prefix="kyc", category="static", generation="v2")
        for name in (old, old_images, current):
            await state.cache.open(name)

        deleted = await activate(state)

        assert sorted(deleted) == ["kyc-images-v1", "kyc-static-v1"]
        assert await state.cache.names() == [current]
        assert state.phase is Phase.ACTIVATED

    async def test_other_namespaces_untouched(self, state: AppState) -> None:
        foreign = CacheName(prefix="another-app", category="static", generation="v1")
        await state.cache.open(foreign)
        assert await activate(state) == []
        assert await state.cache.names() == [foreign]

    async def test_claims_registered_clients(self, state: AppState) -> None:
        state.notifier.register("tab-1")
        state.notifier.register("tab-2")
        assert state.notifier.controlled_clients() == []

        await activate(state)

        assert sorted(state.notifier.controlled_clients()) == ["tab-1", "tab-2"]
