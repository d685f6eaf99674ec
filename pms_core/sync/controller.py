"""
pms_core/sync/controller.py - 客户端同步控制器

推送 + 轮询两种机制使客户端缓存与服务端最终一致：
- 启动时立即失效固定键列表，并按固定间隔重复失效（与推送无关的兜底）
- 收到 data_update 推送时只失效该类别对应的键；未知类别失效全部
- sync_now()：取消轮询计时、失效全部、通知确认、以新的间隔重启轮询
- stop()：同步取消计时并关闭连接，不留下孤立的计时器或连接
"""
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
import asyncio
import logging

from pms_core.realtime.broadcast import DATA_UPDATE_EVENT
from pms_core.sync.connection import RealtimeConnection
from pms_core.sync.query_cache import QueryCache

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[Callable[[Dict[str, Any]], None]], RealtimeConnection]


class SyncController:
    """
    同步控制器

    Args:
        cache: 查询缓存
        invalidation_table: 数据类别 -> 受影响的查询键
        tracked_keys: 初始同步与轮询失效的键列表
        connection_factory: on_message -> RealtimeConnection；为 None 时仅轮询
        poll_interval: 轮询间隔（秒）
        sync_interval: 手动同步后重启轮询使用的间隔；为 None 时沿用 poll_interval
        on_synced: 手动同步完成后的通知回调（标题, 描述）
    """

    def __init__(
        self,
        cache: QueryCache,
        invalidation_table: Mapping[str, Sequence[str]],
        tracked_keys: Sequence[str],
        connection_factory: Optional[ConnectionFactory] = None,
        poll_interval: float = 30.0,
        sync_interval: Optional[float] = None,
        on_synced: Optional[Callable[[str, str], None]] = None,
    ):
        self.cache = cache
        self.invalidation_table = {k: tuple(v) for k, v in invalidation_table.items()}
        self.tracked_keys = tuple(tracked_keys)
        self.poll_interval = poll_interval
        self.sync_interval = sync_interval if sync_interval is not None else poll_interval
        self.current_interval = poll_interval
        self._connection_factory = connection_factory
        self._on_synced = on_synced
        self._connection: Optional[RealtimeConnection] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._running = False
        self.poll_ticks = 0

    # ---- 生命周期 ----

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def connection(self) -> Optional[RealtimeConnection]:
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and self._connection.is_open

    def start(self) -> None:
        """启动：初始同步 + 轮询 + 推送连接（需在运行中的事件循环里调用）"""
        if self._running:
            return
        self._running = True
        for key in self.tracked_keys:
            self.cache.track(key)
        self.sync_tracked()
        self._schedule_polling(self.poll_interval)
        if self._connection_factory is not None:
            self._connection = self._connection_factory(self.handle_message)
            self._connection.start()
        logger.info(
            f"Sync controller started (poll every {self.poll_interval}s, "
            f"push {'enabled' if self._connection else 'disabled'})"
        )

    def stop(self) -> None:
        """停止：同步清除计时器并关闭连接"""
        self._cancel_polling()
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        self._running = False
        logger.info("Sync controller stopped")

    # ---- 轮询 ----

    def _schedule_polling(self, interval: float) -> None:
        self._cancel_polling()
        self.current_interval = interval
        self._poll_task = asyncio.get_running_loop().create_task(self._poll(interval))

    def _cancel_polling(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
        self._poll_task = None

    async def _poll(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.poll_ticks += 1
            self.sync_tracked()

    def has_pending_timers(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    # ---- 失效 ----

    def sync_tracked(self) -> List[str]:
        """失效固定键列表"""
        affected: List[str] = []
        for key in self.tracked_keys:
            affected.extend(self.cache.invalidate(key))
        return affected

    def keys_for_category(self, category: Any) -> Optional[Sequence[str]]:
        """类别对应的键；未知类别返回 None"""
        if not isinstance(category, str):
            return None
        return self.invalidation_table.get(category)

    def handle_message(self, message: Dict[str, Any]) -> List[str]:
        """处理推送消息，返回被失效的键"""
        if message.get("event") != DATA_UPDATE_EVENT:
            return []
        data = message.get("data")
        category = data.get("type") if isinstance(data, dict) else None
        keys = self.keys_for_category(category)
        if keys is None:
            logger.info(f"Unknown data_update category {category!r}, invalidating all queries")
            return self.cache.invalidate_all()

        affected: List[str] = []
        for key in keys:
            affected.extend(self.cache.invalidate(key))
        logger.debug(f"data_update {category}: invalidated {affected}")
        return affected

    def sync_now(self, interval: Optional[float] = None) -> List[str]:
        """手动同步：取消当前轮询，失效全部，通知，并以给定间隔重启轮询"""
        self._cancel_polling()
        affected = self.cache.invalidate_all()
        if self._on_synced is not None:
            try:
                self._on_synced(
                    "Data Synchronized",
                    "All data has been updated with the latest information.",
                )
            except Exception as e:
                logger.error(f"Sync notification failed: {e}", exc_info=True)
        if self._running:
            self._schedule_polling(interval if interval is not None else self.sync_interval)
        return affected
