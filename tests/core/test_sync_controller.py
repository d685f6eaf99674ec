"""
测试同步控制器：推送失效、轮询兜底、手动同步与清理
"""
import asyncio
from unittest.mock import MagicMock
from pms_core.sync import QueryCache, SyncController

TABLE = {
    "reservations": ("/api/reservations", "/api/dashboard/metrics"),
    "rooms": ("/api/rooms", "/api/dashboard/metrics"),
    "permissions": ("/api/auth/user",),
}
KEYS = ("/api/reservations", "/api/rooms", "/api/dashboard/metrics")


def _cache_with(*keys):
    cache = QueryCache()
    for key in keys:
        cache.set(key, "fresh")
    return cache


def _fresh(cache):
    return sorted(key for key in cache.keys() if not cache.entry(key).is_stale)


class TestHandleMessage:

    def test_category_invalidates_table_keys(self):
        cache = _cache_with(*KEYS, "/api/guests")
        controller = SyncController(cache, TABLE, KEYS)
        affected = controller.handle_message({"event": "data_update", "data": {"type": "reservations"}})
        assert sorted(affected) == ["/api/dashboard/metrics", "/api/reservations"]
        assert _fresh(cache) == ["/api/guests", "/api/rooms"]

    def test_unknown_category_invalidates_everything(self):
        cache = _cache_with(*KEYS, "/api/guests")
        controller = SyncController(cache, TABLE, KEYS)
        affected = controller.handle_message({"event": "data_update", "data": {"type": "menu"}})
        assert len(affected) == 4
        assert _fresh(cache) == []

    def test_missing_type_invalidates_everything(self):
        cache = _cache_with(*KEYS)
        controller = SyncController(cache, TABLE, KEYS)
        controller.handle_message({"event": "data_update", "data": None})
        assert _fresh(cache) == []

    def test_other_events_ignored(self):
        cache = _cache_with(*KEYS)
        controller = SyncController(cache, TABLE, KEYS)
        assert controller.handle_message({"event": "auth_ack", "data": {}}) == []
        assert _fresh(cache) == sorted(KEYS)

    def test_permissions_category(self):
        cache = _cache_with("/api/auth/user", *KEYS)
        controller = SyncController(cache, TABLE, KEYS)
        controller.handle_message({"event": "data_update", "data": {"type": "permissions"}})
        assert cache.entry("/api/auth/user").is_stale


class TestLifecycle:

    def test_start_syncs_tracked_keys_and_connects(self):
        connection = MagicMock()
        factory = MagicMock(return_value=connection)

        async def scenario():
            cache = QueryCache()
            controller = SyncController(cache, TABLE, KEYS, connection_factory=factory, poll_interval=60)
            controller.start()
            assert controller.is_running
            assert controller.has_pending_timers()
            controller.stop()
            return cache, controller

        cache, controller = asyncio.run(scenario())
        assert sorted(cache.keys()) == sorted(KEYS)
        assert all(cache.entry(key).invalidation_count == 1 for key in KEYS)
        factory.assert_called_once_with(controller.handle_message)
        connection.start.assert_called_once()
        connection.close.assert_called_once()

    def test_polling_invalidates_periodically(self):
        async def scenario():
            cache = QueryCache()
            controller = SyncController(cache, TABLE, KEYS, poll_interval=0.01)
            controller.start()
            await asyncio.sleep(0.055)
            controller.stop()
            return cache, controller

        cache, controller = asyncio.run(scenario())
        assert controller.poll_ticks >= 2
        assert cache.entry("/api/rooms").invalidation_count == controller.poll_ticks + 1

    def test_polling_continues_without_push(self):
        async def scenario():
            controller = SyncController(QueryCache(), TABLE, KEYS, poll_interval=0.01)
            controller.start()
            await asyncio.sleep(0.03)
            ticks = controller.poll_ticks
            controller.stop()
            return controller, ticks

        controller, ticks = asyncio.run(scenario())
        assert controller.connection is None
        assert not controller.is_connected
        assert ticks >= 1

    def test_sync_now_restarts_polling_with_new_interval(self):
        notifications = []

        async def scenario():
            cache = _cache_with("/api/guests")
            controller = SyncController(
                cache, TABLE, KEYS, poll_interval=60,
                on_synced=lambda title, body: notifications.append(title),
            )
            controller.start()
            first_timer = controller._poll_task
            affected = controller.sync_now(interval=0.01)
            await asyncio.sleep(0.001)
            assert first_timer.cancelled()
            assert controller.current_interval == 0.01
            await asyncio.sleep(0.03)
            controller.stop()
            return affected, controller

        affected, controller = asyncio.run(scenario())
        assert "/api/guests" in affected
        assert notifications == ["Data Synchronized"]
        assert controller.poll_ticks >= 1

    def test_stop_leaves_no_pending_timers(self):
        connection = MagicMock()

        async def scenario():
            controller = SyncController(
                QueryCache(), TABLE, KEYS,
                connection_factory=lambda on_message: connection, poll_interval=0.01,
            )
            controller.start()
            controller.stop()
            await asyncio.sleep(0.03)
            return controller

        controller = asyncio.run(scenario())
        assert not controller.has_pending_timers()
        assert not controller.is_running
        assert controller.poll_ticks == 0
        connection.close.assert_called_once()

    def test_notification_failure_does_not_break_sync(self):
        def broken(title, body):
            raise RuntimeError("toast failed")

        async def scenario():
            cache = _cache_with(*KEYS)
            controller = SyncController(cache, TABLE, KEYS, poll_interval=60, on_synced=broken)
            controller.start()
            controller.sync_now()
            pending = controller.has_pending_timers()
            controller.stop()
            return cache, pending

        cache, pending = asyncio.run(scenario())
        assert _fresh(cache) == []
        assert pending

    def test_sync_now_defaults_to_configured_sync_interval(self):
        async def scenario():
            controller = SyncController(QueryCache(), TABLE, KEYS, poll_interval=60, sync_interval=5)
            controller.start()
            assert controller.current_interval == 60
            controller.sync_now()
            interval = controller.current_interval
            controller.stop()
            return interval

        assert asyncio.run(scenario()) == 5

    def test_sync_interval_falls_back_to_poll_interval(self):
        controller = SyncController(QueryCache(), TABLE, KEYS, poll_interval=45)
        assert controller.sync_interval == 45
