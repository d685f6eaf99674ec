"""
pms_core/sync/query_cache.py - 客户端查询缓存

以查询路径为键缓存读取结果。失效（invalidate）只标记过期并为活跃查询触发重新获取；
同一键同时最多只有一个进行中的获取。获取进行中再次失效时不并发新请求，
而是在当前获取完成后补发一次，期间条目保持过期。
"""
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any, Awaitable, Callable, Dict, List, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


def key_matches(key: str, prefix: str) -> bool:
    """前缀匹配：'/api/rooms' 匹配 '/api/rooms'、'/api/rooms/7'、'/api/rooms?branch=1'"""
    if key == prefix:
        return True
    return key.startswith(prefix.rstrip("/") + "/") or key.startswith(prefix + "?")


@dataclass
class CacheEntry:
    """
    缓存条目

    Attributes:
        key: 查询键
        data: 最近一次成功获取的数据
        is_stale: 是否已过期
        updated_at: 最近一次成功获取时间
        fetch_count: 实际发起的获取次数
        invalidation_count: 被失效的次数
        refetch_pending: 获取进行中又被失效，完成后需再获取一次
        error: 最近一次获取失败的异常
    """

    key: str
    data: Any = None
    is_stale: bool = True
    updated_at: Optional[datetime] = None
    fetch_count: int = 0
    invalidation_count: int = 0
    refetch_pending: bool = False
    error: Optional[BaseException] = None


class QueryCache:
    """
    查询缓存

    Example:
        >>> cache = QueryCache()
        >>> cache.register("/api/rooms", fetch_rooms)
        >>> await cache.fetch("/api/rooms")
        >>> cache.invalidate("/api/rooms")   # 后台重新获取
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._fetchers: Dict[str, Fetcher] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}

    # ---- 注册 ----

    def register(self, key: str, fetcher: Fetcher) -> CacheEntry:
        """注册活跃查询；失效时会自动重新获取"""
        self._fetchers[key] = fetcher
        return self._entries.setdefault(key, CacheEntry(key=key))

    def track(self, key: str) -> CacheEntry:
        """登记一个键（无获取函数），失效只标记过期"""
        return self._entries.setdefault(key, CacheEntry(key=key))

    def unregister(self, key: str) -> None:
        self._fetchers.pop(key, None)

    def is_registered(self, key: str) -> bool:
        return key in self._fetchers

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def entry(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry else None

    def set(self, key: str, data: Any) -> None:
        """直接写入数据（如写操作的返回值）"""
        entry = self._entries.setdefault(key, CacheEntry(key=key))
        entry.data = data
        entry.is_stale = False
        entry.updated_at = datetime.now(UTC)

    # ---- 获取 ----

    async def fetch(self, key: str) -> Any:
        """获取查询结果；已有进行中的获取时复用它"""
        task = self._in_flight.get(key)
        if task is None or task.done():
            if key not in self._fetchers:
                raise KeyError(f"No fetcher registered for query {key!r}")
            task = asyncio.get_running_loop().create_task(self._run_fetch(key))
            self._in_flight[key] = task
        return await asyncio.shield(task)

    async def _run_fetch(self, key: str) -> Any:
        entry = self._entries.setdefault(key, CacheEntry(key=key))
        entry.fetch_count += 1
        entry.refetch_pending = False
        started_at = entry.invalidation_count
        try:
            data = await self._fetchers[key]()
            entry.data = data
            # 获取期间又被失效：数据可能早于那次写入，保持过期
            entry.is_stale = entry.invalidation_count != started_at
            entry.error = None
            entry.updated_at = datetime.now(UTC)
            return data
        except Exception as e:
            entry.error = e
            raise
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]
                if entry.refetch_pending and key in self._fetchers:
                    self._refetch_in_background(key)

    def _refetch_in_background(self, key: str) -> None:
        task = self._in_flight.get(key)
        if task is not None and not task.done():
            self._entries[key].refetch_pending = True
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # 不在事件循环中：仅标记过期，下次 fetch 时获取
            return
        task = loop.create_task(self._run_fetch(key))
        task.add_done_callback(self._log_background_failure)
        self._in_flight[key] = task

    @staticmethod
    def _log_background_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Background refetch failed: {error}")

    # ---- 失效 ----

    def invalidate(self, prefix: str) -> List[str]:
        """使匹配前缀的查询失效；返回受影响的键"""
        affected = [key for key in self._entries if key_matches(key, prefix)]
        for key in affected:
            self._mark_stale(key)
        return affected

    def invalidate_all(self) -> List[str]:
        """使全部查询失效"""
        affected = list(self._entries.keys())
        for key in affected:
            self._mark_stale(key)
        return affected

    def _mark_stale(self, key: str) -> None:
        entry = self._entries[key]
        entry.is_stale = True
        entry.invalidation_count += 1
        if key in self._fetchers:
            self._refetch_in_background(key)

    def in_flight_count(self) -> int:
        return sum(1 for task in self._in_flight.values() if not task.done())

    async def wait_idle(self) -> None:
        """等待所有进行中的获取完成（失败不抛出）"""
        while True:
            pending = [task for task in self._in_flight.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def cancel_all(self) -> None:
        """取消所有进行中的获取"""
        for task in list(self._in_flight.values()):
            task.cancel()
        self._in_flight.clear()
        for entry in self._entries.values():
            entry.refetch_pending = False
