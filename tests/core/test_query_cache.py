"""
测试客户端查询缓存：前缀失效与进行中请求去重
"""
import asyncio
import pytest
from pms_core.sync import QueryCache, key_matches


def test_key_matches():
    assert key_matches("/api/rooms", "/api/rooms")
    assert key_matches("/api/rooms/7", "/api/rooms")
    assert key_matches("/api/rooms?status=available", "/api/rooms")
    assert not key_matches("/api/rooms-archive", "/api/rooms")
    assert not key_matches("/api/room", "/api/rooms")


def test_invalidate_marks_matching_entries_stale():
    cache = QueryCache()
    cache.set("/api/rooms", [1])
    cache.set("/api/rooms/1", {"id": 1})
    cache.set("/api/guests", [])

    affected = cache.invalidate("/api/rooms")

    assert sorted(affected) == ["/api/rooms", "/api/rooms/1"]
    assert cache.entry("/api/rooms").is_stale
    assert not cache.entry("/api/guests").is_stale


def test_invalidate_unknown_prefix_is_noop():
    cache = QueryCache()
    assert cache.invalidate("/api/nothing") == []
    assert cache.keys() == []


def test_tracked_key_only_marked_stale():
    cache = QueryCache()
    cache.track("/api/analytics/revenue")
    assert cache.invalidate("/api/analytics/revenue") == ["/api/analytics/revenue"]
    entry = cache.entry("/api/analytics/revenue")
    assert entry.is_stale
    assert entry.fetch_count == 0
    assert entry.invalidation_count == 1


def test_fetch_without_fetcher_raises():
    async def scenario():
        with pytest.raises(KeyError):
            await QueryCache().fetch("/api/rooms")

    asyncio.run(scenario())


def test_invalidate_refetches_active_query():
    calls = []

    async def fetch_rooms():
        calls.append(1)
        return ["room-%d" % len(calls)]

    async def scenario():
        cache = QueryCache()
        cache.register("/api/rooms", fetch_rooms)
        assert await cache.fetch("/api/rooms") == ["room-1"]
        cache.invalidate("/api/rooms")
        await cache.wait_idle()
        return cache

    cache = asyncio.run(scenario())
    assert len(calls) == 2
    assert cache.get("/api/rooms") == ["room-2"]
    assert not cache.entry("/api/rooms").is_stale


def test_repeated_invalidation_collapses_into_one_follow_up():
    async def scenario():
        release = asyncio.Event()
        calls = []

        async def slow_fetch():
            calls.append(1)
            await release.wait()
            return "data"

        cache = QueryCache()
        cache.register("/api/reservations", slow_fetch)
        cache.track("/api/reservations")
        cache.invalidate("/api/reservations")
        await asyncio.sleep(0)
        cache.invalidate("/api/reservations")
        cache.invalidate_all()
        assert cache.in_flight_count() == 1
        assert cache.entry("/api/reservations").refetch_pending

        # 进行中的获取被复用
        waiter = asyncio.ensure_future(cache.fetch("/api/reservations"))
        await asyncio.sleep(0)
        release.set()
        assert await waiter == "data"
        await cache.wait_idle()
        return calls, cache

    calls, cache = asyncio.run(scenario())
    # 进行中的两次失效合并为一次补发的获取
    assert len(calls) == 2
    entry = cache.entry("/api/reservations")
    assert entry.invalidation_count == 3
    assert not entry.refetch_pending
    assert not entry.is_stale


def test_invalidation_during_fetch_is_not_lost():
    server = {"value": "old"}
    seen = []

    async def scenario():
        gate = asyncio.Event()

        async def read_then_wait():
            entry = cache.entry("/api/rooms")
            seen.append((entry.data, entry.is_stale))
            value = server["value"]
            await gate.wait()
            return value

        cache = QueryCache()
        cache.register("/api/rooms", read_then_wait)
        cache.invalidate("/api/rooms")
        await asyncio.sleep(0)

        # 写入发生在获取读取之后
        server["value"] = "new"
        cache.invalidate("/api/rooms")
        gate.set()
        await cache.wait_idle()
        return cache

    cache = asyncio.run(scenario())
    entry = cache.entry("/api/rooms")
    # 补发的获取开始时，旧数据仍标记为过期
    assert seen[1] == ("old", True)
    assert entry.data == "new"
    assert not entry.is_stale
    assert entry.fetch_count == 2


def test_cancel_all_drops_pending_follow_up():
    async def scenario():
        gate = asyncio.Event()

        async def blocked():
            await gate.wait()
            return 1

        cache = QueryCache()
        cache.register("/api/guests", blocked)
        cache.invalidate("/api/guests")
        await asyncio.sleep(0)
        cache.invalidate("/api/guests")
        cache.cancel_all()
        await asyncio.sleep(0)
        return cache

    cache = asyncio.run(scenario())
    assert cache.in_flight_count() == 0
    assert not cache.entry("/api/guests").refetch_pending


def test_failed_fetch_keeps_previous_data():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) > 1:
            raise RuntimeError("server down")
        return "v1"

    async def scenario():
        cache = QueryCache()
        cache.register("/api/guests", flaky)
        await cache.fetch("/api/guests")
        cache.invalidate("/api/guests")
        await cache.wait_idle()
        return cache

    cache = asyncio.run(scenario())
    entry = cache.entry("/api/guests")
    assert entry.data == "v1"
    assert entry.is_stale
    assert isinstance(entry.error, RuntimeError)


def test_invalidate_outside_event_loop_only_marks_stale():
    async def fetcher():
        return 1

    cache = QueryCache()
    cache.register("/api/rooms", fetcher)
    assert cache.invalidate("/api/rooms") == ["/api/rooms"]
    assert cache.in_flight_count() == 0
    assert cache.entry("/api/rooms").is_stale
