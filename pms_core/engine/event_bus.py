"""
pms_core/engine/event_bus.py

进程内事件总线 - 发布/订阅模式
写操作提交后发布事件，订阅方（如实时推送）与写入方解耦。
实例由应用显式持有（app.state.event_bus），不是进程级单例。
"""
from typing import Callable, Dict, List, Any, Optional, Protocol, Tuple
from dataclasses import dataclass, field
from datetime import datetime, UTC
from collections import deque
import logging
import threading
import uuid

logger = logging.getLogger(__name__)

EventId = str


def _generate_event_id() -> EventId:
    """生成唯一事件ID"""
    return f"{datetime.now(UTC).strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:8]}"


class EventHandler(Protocol):
    """事件处理器协议"""

    def __call__(self, event: "Event") -> None:
        ...


@dataclass
class Event:
    """
    事件

    Attributes:
        event_type: 事件类型（如 "data.changed"）
        data: 事件数据
        source: 触发来源（服务名）
        timestamp: 事件时间戳
        event_id: 唯一事件ID
    """

    event_type: str
    data: Dict[str, Any]
    source: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    event_id: EventId = field(default_factory=_generate_event_id)


@dataclass
class PublishResult:
    """
    事件发布结果

    Attributes:
        event_type: 事件类型
        subscriber_count: 订阅者数量
        success_count: 成功处理的处理器数量
        failure_count: 失败的处理器数量
        errors: (handler, exception) 列表
    """

    event_type: str
    subscriber_count: int
    success_count: int = 0
    failure_count: int = 0
    errors: List[Tuple[Callable, Exception]] = field(default_factory=list)


class EventBus:
    """
    事件总线（线程安全）

    FastAPI 同步路由运行在线程池中，发布可能来自任意线程。
    处理器异常相互隔离，不影响发布方。

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe("data.changed", lambda e: print(e.data))
        >>> bus.publish(Event(event_type="data.changed", data={"category": "rooms"}))
    """

    def __init__(self, history_size: int = 100):
        self._subscribers: Dict[str, List[EventHandler]] = {}
        self._event_history: deque = deque(maxlen=history_size)
        self._subscriber_lock = threading.RLock()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """订阅事件（同一处理器重复订阅只记一次）"""
        with self._subscriber_lock:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)
                logger.info(f"Handler {getattr(handler, '__name__', handler)!s} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """取消订阅"""
        with self._subscriber_lock:
            if handler in self._subscribers.get(event_type, []):
                self._subscribers[event_type].remove(handler)

    def publish(self, event: Event) -> PublishResult:
        """
        发布事件（同步执行所有处理器）

        Returns:
            PublishResult 处理统计
        """
        self._event_history.append(event)

        with self._subscriber_lock:
            handlers = list(self._subscribers.get(event.event_type, []))

        result = PublishResult(event_type=event.event_type, subscriber_count=len(handlers))

        for handler in handlers:
            try:
                handler(event)
                result.success_count += 1
            except Exception as e:
                result.failure_count += 1
                result.errors.append((handler, e))
                logger.error(
                    f"Event handler {getattr(handler, '__name__', handler)!s} error for {event.event_type}: {e}",
                    exc_info=True,
                )

        return result

    def get_history(self, event_type: Optional[str] = None, limit: int = 50) -> List[Event]:
        """获取事件历史（最新的在前，用于调试）"""
        history = list(self._event_history)
        if event_type:
            history = [e for e in history if e.event_type == event_type]
        return list(reversed(history))[:limit]

    def subscriber_count(self, event_type: str) -> int:
        with self._subscriber_lock:
            return len(self._subscribers.get(event_type, []))

    def clear(self) -> None:
        """清空订阅和历史"""
        with self._subscriber_lock:
            self._subscribers.clear()
        self._event_history.clear()


__all__ = [
    "EventId",
    "EventHandler",
    "Event",
    "PublishResult",
    "EventBus",
]
