"""Tests for the shared read-through cache."""

import asyncio

import pytest

from conftest import make_link
from linkverse.core.cache import SharedCache
from linkverse.core.errors import AuthRequired
from linkverse.models.entities import EntityKind


@pytest.fixture
def cache(gateway, settings, clock) -> SharedCache:
    return SharedCache(gateway, settings, clock=clock)


class TestFreshness:

    @pytest.mark.asyncio
    async def test_fresh_read_makes_no_network_call(self, cache, gateway, clock):
        first = await cache.get_or_refresh(EntityKind.LINKS)
        clock.advance(29)
        second = await cache.get_or_refresh(EntityKind.LINKS)

        assert gateway.calls["links"] == 1
        assert [link.id for link in second.value] == [link.id for link in first.value]
        assert second.stale is False

    @pytest.mark.asyncio
    async def test_refresh_populates_every_kind(self, cache, gateway):
        await cache.get_or_refresh(EntityKind.LINKS)
        await cache.get_or_refresh(EntityKind.COLLECTIONS)
        profile = await cache.get_or_refresh(EntityKind.PROFILE)

        assert gateway.calls == {"links": 1, "collections": 1, "profile": 1}
        assert profile.value.id == "user-1"

    @pytest.mark.asyncio
    async def test_expired_entry_is_refetched(self, cache, gateway, clock):
        await cache.get_or_refresh(EntityKind.LINKS)
        clock.advance(30)
        assert cache.peek(EntityKind.LINKS).stale is True

        await cache.get_or_refresh(EntityKind.LINKS)
        assert gateway.calls["links"] == 2

    def test_peek_before_any_fetch(self, cache):
        links = cache.peek(EntityKind.LINKS)
        profile = cache.peek(EntityKind.PROFILE)

        assert links.populated is False
        assert links.value == []
        assert profile.value is None


class TestSingleFlight:

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self, cache, gateway):
        gateway.delay = 0.05

        results = await asyncio.gather(
            cache.get_or_refresh(EntityKind.LINKS),
            cache.get_or_refresh(EntityKind.LINKS),
            cache.get_or_refresh(EntityKind.COLLECTIONS),
            cache.get_or_refresh(EntityKind.PROFILE),
        )

        assert gateway.calls == {"links": 1, "collections": 1, "profile": 1}
        assert len(results[0].value) == 2
        assert results[0].value == results[1].value

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_refresh(self, cache, gateway):
        gateway.delay = 0.05

        first = asyncio.ensure_future(cache.get_or_refresh(EntityKind.LINKS))
        second = asyncio.ensure_future(cache.get_or_refresh(EntityKind.LINKS))
        await asyncio.sleep(0.01)
        first.cancel()

        entry = await second
        assert entry.populated is True
        assert gateway.calls["links"] == 1


class TestInvalidate:

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, cache, gateway):
        await cache.get_or_refresh(EntityKind.LINKS)
        generation = cache.generation

        cache.invalidate()

        assert cache.generation == generation + 1
        assert cache.peek(EntityKind.LINKS).populated is False
        await cache.get_or_refresh(EntityKind.LINKS)
        assert gateway.calls["links"] == 2

    @pytest.mark.asyncio
    async def test_invalidate_during_refresh_discards_old_results(self, cache, gateway):
        gateway.delay = 0.05

        reader = asyncio.ensure_future(cache.get_or_refresh(EntityKind.LINKS))
        await asyncio.sleep(0.01)

        # a mutation lands while the first fetch is still in flight
        gateway.links.append(make_link("3", title="Added during refresh"))
        cache.invalidate()

        entry = await reader
        assert "3" in [link.id for link in entry.value]
        assert gateway.calls["links"] == 2

    @pytest.mark.asyncio
    async def test_superseded_refresh_never_overwrites_newer_data(self, cache, gateway):
        gateway.delay = 0.05
        stale_reader = asyncio.ensure_future(cache.get_or_refresh(EntityKind.LINKS))
        await asyncio.sleep(0.01)

        gateway.links.clear()
        cache.invalidate()
        fresh = await cache.get_or_refresh(EntityKind.LINKS)
        await stale_reader

        assert fresh.value == []
        assert cache.peek(EntityKind.LINKS).value == []


class TestPartialFailure:

    @pytest.mark.asyncio
    async def test_failed_kind_keeps_previous_value(self, cache, gateway, clock):
        await cache.get_or_refresh(EntityKind.LINKS)
        before = cache.peek(EntityKind.COLLECTIONS)

        clock.advance(60)
        gateway.fail_kinds = {"collections"}
        gateway.links.append(make_link("3"))
        links = await cache.get_or_refresh(EntityKind.LINKS)
        collections = cache.peek(EntityKind.COLLECTIONS)

        assert len(links.value) == 3
        assert links.stale is False
        assert collections.value == before.value
        assert collections.fetched_at == before.fetched_at
        assert collections.stale is True

    @pytest.mark.asyncio
    async def test_total_failure_leaves_entries_unpopulated(self, cache, gateway):
        gateway.fail_kinds = {"links", "collections", "profile"}

        links = await cache.get_or_refresh(EntityKind.LINKS)
        profile = await cache.get_or_refresh(EntityKind.PROFILE)

        assert links.value == []
        assert links.populated is False
        assert profile.value is None
        assert profile.populated is False

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, cache, gateway):
        async def broken_profile():
            raise RuntimeError("boom")

        gateway.current_profile = broken_profile

        links = await cache.get_or_refresh(EntityKind.LINKS)

        assert links.populated is True
        assert cache.peek(EntityKind.PROFILE).populated is False


class TestSessionRejected:

    @pytest.mark.asyncio
    async def test_rejected_session_raises_to_every_waiter(self, cache, gateway):
        gateway.delay = 0.05
        gateway.reject_session = True

        results = await asyncio.gather(
            cache.get_or_refresh(EntityKind.LINKS),
            cache.get_or_refresh(EntityKind.COLLECTIONS),
            cache.get_or_refresh(EntityKind.PROFILE),
            return_exceptions=True,
        )

        assert all(isinstance(result, AuthRequired) for result in results)
        assert gateway.calls == {"links": 1, "collections": 1, "profile": 1}
        assert cache.peek(EntityKind.LINKS).populated is False

    @pytest.mark.asyncio
    async def test_rejected_session_keeps_previous_values_and_retries(self, cache, gateway, clock):
        await cache.get_or_refresh(EntityKind.LINKS)
        before = cache.peek(EntityKind.LINKS)

        clock.advance(60)
        gateway.reject_session = True
        with pytest.raises(AuthRequired):
            await cache.get_or_refresh(EntityKind.LINKS)
        assert cache.peek(EntityKind.LINKS).value == before.value

        # signing back in lets the next read refresh normally
        gateway.reject_session = False
        entry = await cache.get_or_refresh(EntityKind.LINKS)
        assert entry.stale is False
        assert gateway.calls["links"] == 3
